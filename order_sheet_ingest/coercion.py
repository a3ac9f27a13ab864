"""
Value coercion helpers for order-sheet-ingest.

Marketplace exports are human-edited spreadsheets, so a single column can
mix native Excel values and locale-formatted strings:

- Money as numbers (``1234.56``) or strings (``"R$ 1.234,56"``,
  ``"1,234.56"``, ``"-10,00"``).
- Dates as ``datetime`` cells, Excel serial numbers (``45292``), ISO
  strings, or ``DD/MM/YYYY`` / ``DD-MM-YYYY`` strings.
- Percentages as ``"15%"``, ``"15,5"`` or 0-1 floats (``0.15``).

Two layers are provided:

- **Lenient** (``parse_money``, ``parse_date``, ``parse_percentage``): never
  raise. Unparseable money degrades to ``0.0`` and unparseable dates or
  percentages to ``None``, so one messy cell never blocks an import. A
  ``0.0`` amount may therefore mean "unparseable", not "actually zero".
- **Strict** (``to_money``, ``to_date``, ``to_percentage``): return ``None``
  for blank cells and raise ``CoercionError`` for unparseable ones. Parsers
  use these in strict mode to record a warning with the cell coordinates
  before falling back to the lenient value.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

import pandas as pd

from order_sheet_ingest.exceptions import CoercionError

# Excel's day zero (1900 leap-year bug included): serial 25569 == 1970-01-01
EXCEL_EPOCH = datetime(1899, 12, 30)

_CURRENCY_PATTERN = re.compile(r"R\$|US\$|\$|€|£")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_DATE_SPLIT_PATTERN = re.compile(r"[/\-]")


def is_blank(value: Any) -> bool:
    """True for ``None``, NaN/NaT and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NaT


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _finite(value: int | float) -> float | None:
    """``float(value)``, or None for NaN, infinities and out-of-range ints."""
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------

def _number_from_text(text: str) -> float:
    """Parse a locale-formatted number with the separators already isolated.

    Decimal separator rules:

    - Both ``,`` and ``.`` present: the later one is the decimal separator,
      the earlier one a thousands separator (``1.234,56`` / ``1,234.56``).
    - Only ``,`` present: it is the decimal separator (``10,50``); repeated
      commas are thousands separators (``1,234,567``).
    - Only ``.`` repeated (``1.234.567``): thousands separators.

    Raises:
        ValueError: If the text is not a finite number.
    """
    text = _WHITESPACE_PATTERN.sub("", text)
    last_comma = text.rfind(",")
    last_dot = text.rfind(".")
    if last_comma != -1 and last_dot != -1:
        if last_comma > last_dot:
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif last_comma != -1:
        if text.count(",") > 1:
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    number = float(text)
    if not math.isfinite(number):
        raise ValueError(text)
    return number


def to_money(value: Any) -> float | None:
    """Strictly parse a monetary cell.

    Numeric cells pass through; strings lose their currency symbol and go
    through the separator rules of ``_number_from_text``.

    Returns:
        The amount, or ``None`` for a blank cell.

    Raises:
        CoercionError: If the cell is not blank and cannot be parsed, or is
            infinite.
    """
    if is_blank(value):
        return None
    if _is_number(value):
        amount = _finite(value)
        if amount is None:
            raise CoercionError(f"Cannot parse money value: {value!r}")
        return amount

    try:
        return _number_from_text(_CURRENCY_PATTERN.sub("", str(value)))
    except ValueError:
        raise CoercionError(f"Cannot parse money value: {value!r}") from None


def parse_money(value: Any) -> float:
    """Leniently parse a monetary cell; blank or unparseable cells yield ``0.0``."""
    try:
        amount = to_money(value)
    except CoercionError:
        return 0.0
    return 0.0 if amount is None else amount


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def _date_from_parts(text: str) -> datetime:
    """Rebuild a date from ``day/month/year`` (or ``year/month/day``) parts."""
    date_part = text.split(" ")[0].split("T")[0]
    parts = _DATE_SPLIT_PATTERN.split(date_part)
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(text)
    if len(parts[0]) == 4:
        year, month, day = (int(p) for p in parts)
    else:
        day, month, year = (int(p) for p in parts)
        if year < 100:
            year += 2000
    return datetime(year, month, day)


def to_date(value: Any) -> datetime | None:
    """Strictly parse a date cell.

    Accepts ``datetime``/``date``/``pd.Timestamp`` values (passed through),
    Excel serial numbers (days since 1899-12-30), and strings (ISO first,
    then ``DD/MM/YYYY`` or ``DD-MM-YYYY``).

    Returns:
        A naive ``datetime``, or ``None`` for a blank cell.

    Raises:
        CoercionError: If the cell is not blank and cannot be parsed.
    """
    if is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if _is_number(value):
        if math.isnan(value) or math.isinf(value):
            raise CoercionError(f"Cannot parse date value: {value!r}")
        try:
            return EXCEL_EPOCH + timedelta(days=float(value))
        except OverflowError:
            raise CoercionError(f"Excel serial out of range: {value!r}") from None

    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            return _date_from_parts(text)
        except ValueError:
            raise CoercionError(f"Cannot parse date value: {value!r}") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(value: Any) -> datetime | None:
    """Leniently parse a date cell; blank or unparseable cells yield ``None``."""
    try:
        return to_date(value)
    except CoercionError:
        return None


# ---------------------------------------------------------------------------
# Percentages
# ---------------------------------------------------------------------------

def to_percentage(value: Any) -> float | None:
    """Strictly parse a percentage cell into percentage points.

    Bare numbers strictly between -1 and 1 are read as fractions and scaled
    by 100 (spreadsheets often store ``15%`` as ``0.15``). Strings are read
    as already being in points: ``"15%"``, ``"15,5"`` and ``"1.234,5%"``
    are not scaled and follow the money separator rules.

    Raises:
        CoercionError: If the cell is not blank and cannot be parsed.
    """
    if is_blank(value):
        return None
    if _is_number(value):
        number = _finite(value)
        if number is None:
            raise CoercionError(f"Cannot parse percentage value: {value!r}")
        return number * 100 if -1 < number < 1 else number

    try:
        return _number_from_text(str(value).strip().rstrip("%"))
    except ValueError:
        raise CoercionError(f"Cannot parse percentage value: {value!r}") from None


def parse_percentage(value: Any) -> float | None:
    """Leniently parse a percentage cell; unparseable cells yield ``None``."""
    try:
        return to_percentage(value)
    except CoercionError:
        return None
