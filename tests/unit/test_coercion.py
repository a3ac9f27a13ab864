"""
Unit tests for value coercion (order_sheet_ingest.coercion).

Covers locale-formatted money strings, Excel serial and string dates,
percentage scaling, and the strict variants that raise CoercionError.
"""

from __future__ import annotations

from datetime import date, datetime

import pandas as pd
import pytest

from order_sheet_ingest.coercion import (
    is_blank,
    parse_date,
    parse_money,
    parse_percentage,
    to_date,
    to_money,
    to_percentage,
)
from order_sheet_ingest.exceptions import CoercionError


class TestParseMoney:
    """Tests for parse_money() (lenient)."""

    def test_brazilian_format_with_currency(self):
        assert parse_money("R$ 1.234,56") == pytest.approx(1234.56)

    def test_us_format(self):
        assert parse_money("1,234.56") == pytest.approx(1234.56)

    def test_unparseable_is_zero(self):
        assert parse_money("abc") == 0.0

    def test_blank_is_zero(self):
        assert parse_money(None) == 0.0
        assert parse_money("   ") == 0.0
        assert parse_money(float("nan")) == 0.0

    def test_numbers_pass_through(self):
        assert parse_money(42) == 42.0
        assert parse_money(-10.5) == -10.5

    def test_comma_only_is_decimal(self):
        assert parse_money("10,50") == pytest.approx(10.5)

    def test_negative_string(self):
        assert parse_money("-12,00") == pytest.approx(-12.0)
        assert parse_money("R$ -1.000,00") == pytest.approx(-1000.0)

    def test_repeated_thousands_separators(self):
        """More than one comma, or more than one dot, means thousands."""
        assert parse_money("1,234,567") == 1234567.0
        assert parse_money("1.234.567") == 1234567.0

    def test_other_currency_symbols(self):
        assert parse_money("US$ 19.99") == pytest.approx(19.99)
        assert parse_money("€ 5,00") == pytest.approx(5.0)

    def test_bool_is_not_a_number(self):
        assert parse_money(True) == 0.0


class TestToMoney:
    """Tests for to_money() (strict)."""

    def test_blank_is_none(self):
        assert to_money("") is None
        assert to_money(None) is None

    def test_raises_on_garbage(self):
        with pytest.raises(CoercionError):
            to_money("n/a")

    def test_coercion_error_is_value_error(self):
        with pytest.raises(ValueError):
            to_money("abc")

    def test_parses_valid_value(self):
        assert to_money("R$ 2.500,00") == pytest.approx(2500.0)

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), 10**400])
    def test_non_finite_number_raises(self, value):
        with pytest.raises(CoercionError):
            to_money(value)

    def test_non_finite_number_is_zero_when_lenient(self):
        assert parse_money(float("inf")) == 0.0
        assert parse_money("inf") == 0.0


class TestParseDate:
    """Tests for parse_date() (lenient)."""

    def test_excel_serial(self):
        """Serial 45292 is 2024-01-01 (epoch 1899-12-30)."""
        assert parse_date(45292) == datetime(2024, 1, 1)

    def test_excel_serial_with_time_fraction(self):
        assert parse_date(45292.5) == datetime(2024, 1, 1, 12, 0)

    def test_datetime_passes_through(self):
        value = datetime(2024, 3, 5, 10, 30)
        assert parse_date(value) is value

    def test_date_becomes_datetime(self):
        assert parse_date(date(2024, 3, 5)) == datetime(2024, 3, 5)

    def test_timestamp(self):
        assert parse_date(pd.Timestamp("2024-03-05 08:00")) == datetime(2024, 3, 5, 8, 0)

    def test_iso_string(self):
        assert parse_date("2024-03-05") == datetime(2024, 3, 5)
        assert parse_date("2024-03-05T14:30:00") == datetime(2024, 3, 5, 14, 30)

    def test_iso_string_with_zulu_is_naive_utc(self):
        assert parse_date("2024-03-05T14:30:00Z") == datetime(2024, 3, 5, 14, 30)

    def test_day_month_year_slash(self):
        assert parse_date("05/03/2024") == datetime(2024, 3, 5)

    def test_day_month_year_dash(self):
        assert parse_date("05-03-2024") == datetime(2024, 3, 5)

    def test_day_month_year_with_time_suffix(self):
        """The time part is ignored by the day/month/year fallback."""
        assert parse_date("05/03/2024 14:22") == datetime(2024, 3, 5)

    def test_two_digit_year(self):
        assert parse_date("05/03/24") == datetime(2024, 3, 5)

    def test_year_first_slash(self):
        assert parse_date("2024/03/05") == datetime(2024, 3, 5)

    def test_invalid_returns_none(self):
        assert parse_date("not a date") is None
        assert parse_date("31/02/2024") is None
        assert parse_date(None) is None
        assert parse_date(pd.NaT) is None


class TestToDate:
    """Tests for to_date() (strict)."""

    def test_blank_is_none(self):
        assert to_date("  ") is None

    def test_raises_on_garbage(self):
        with pytest.raises(CoercionError):
            to_date("ontem")


class TestParsePercentage:
    """Tests for parse_percentage()."""

    def test_fraction_is_scaled(self):
        assert parse_percentage(0.15) == pytest.approx(15.0)

    def test_whole_number_is_not_scaled(self):
        assert parse_percentage(15) == 15.0

    def test_negative_fraction_is_scaled(self):
        assert parse_percentage(-0.5) == pytest.approx(-50.0)

    def test_boundaries_are_not_scaled(self):
        assert parse_percentage(1) == 1.0
        assert parse_percentage(-1) == -1.0

    def test_string_with_percent_sign(self):
        assert parse_percentage("15%") == 15.0

    def test_string_with_comma_decimal(self):
        assert parse_percentage("15,5") == pytest.approx(15.5)
        assert parse_percentage("39,15 %") == pytest.approx(39.15)

    def test_strings_are_not_scaled(self):
        assert parse_percentage("0,5") == pytest.approx(0.5)

    def test_thousands_separators(self):
        assert parse_percentage("1.234,5%") == pytest.approx(1234.5)
        assert parse_percentage("1,234.5%") == pytest.approx(1234.5)

    def test_infinite_number_raises(self):
        with pytest.raises(CoercionError):
            to_percentage(float("inf"))
        assert parse_percentage(float("-inf")) is None

    def test_invalid_returns_none(self):
        assert parse_percentage("alta") is None
        assert parse_percentage(None) is None

    def test_strict_raises(self):
        with pytest.raises(CoercionError):
            to_percentage("alta")


class TestIsBlank:
    """Tests for is_blank()."""

    @pytest.mark.parametrize("value", [None, "", "  ", float("nan"), pd.NaT])
    def test_blank_values(self, value):
        assert is_blank(value)

    @pytest.mark.parametrize("value", [0, 0.0, "0", "x"])
    def test_non_blank_values(self, value):
        assert not is_blank(value)
