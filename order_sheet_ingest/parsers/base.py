"""
Base parser ABC and shared row machinery for order-sheet-ingest.

All sheet parsers implement this interface. The contract is:
1. recognize(header) decides from the normalized header row alone whether
   the parser owns the sheet.
2. map_columns(header) builds the read-only ColumnMap for the sheet.
3. extract(rows, column_map) turns every data row into a NormalizedOrder
   or a skipped / error RowOutcome. One bad row never stops the sheet.
4. parse(rows, marketplace_hint) chains the three and returns a
   ParserResult, or None for "not my sheet". None is also returned when
   the sheet is recognized but the mandatory columns are missing or no
   row survived, so the orchestrator moves on to the next parser.

Native marketplace parsers share NativeParser, which drives recognition
and column mapping from the marketplace's signature YAML.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar

from order_sheet_ingest.coercion import (
    is_blank,
    parse_date,
    parse_money,
    parse_percentage,
    to_date,
    to_money,
    to_percentage,
)
from order_sheet_ingest.columns import (
    ColumnMap,
    build_column_map,
    find_phrase,
    header_text,
    matches_any,
    normalize_header_row,
)
from order_sheet_ingest.config import ParsingConfig
from order_sheet_ingest.exceptions import CoercionError
from order_sheet_ingest.models import (
    MarketplaceName,
    NormalizedOrder,
    ParseReport,
    ParserResult,
    RowOutcome,
)
from order_sheet_ingest.signature_registry import load_signature, resolve_synonyms

logger = logging.getLogger(__name__)


class SkipRow(Exception):
    """Raised inside row parsing to drop a row with a reason."""


class RowReader:
    """Typed access to the cells of one data row through a ColumnMap.

    A field missing from the column map reads as ``None`` (unknown), never
    as an error. In strict mode every cell that is present but unparseable
    is recorded in ``warnings`` with its row, column and header label; the
    lenient value is returned either way.
    """

    def __init__(
        self,
        row: Sequence[Any],
        row_number: int,
        column_map: ColumnMap,
        strict: bool = False,
    ) -> None:
        self.row = row
        self.row_number = row_number
        self.column_map = column_map
        self.strict = strict
        self.warnings: list[str] = []

    def has(self, field_name: str) -> bool:
        return field_name in self.column_map

    def cell(self, field_name: str) -> Any:
        index = self.column_map.get(field_name)
        if index is None or index >= len(self.row):
            return None
        return self.row[index]

    def text(self, field_name: str) -> str | None:
        value = self.cell(field_name)
        if is_blank(value):
            return None
        # Excel hands numeric ids back as floats: 2000012345.0 -> "2000012345"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value).strip()

    def money(self, field_name: str) -> float | None:
        """Read a monetary cell. Blank or unparseable cells read as ``0.0``."""
        if not self.has(field_name):
            return None
        value = self.cell(field_name)
        if self.strict:
            self._check(field_name, value, to_money, "money")
        return parse_money(value)

    def date(self, field_name: str) -> datetime | None:
        if not self.has(field_name):
            return None
        value = self.cell(field_name)
        if self.strict:
            self._check(field_name, value, to_date, "date")
        return parse_date(value)

    def percentage(self, field_name: str) -> float | None:
        if not self.has(field_name):
            return None
        value = self.cell(field_name)
        if self.strict:
            self._check(field_name, value, to_percentage, "percentage")
        return parse_percentage(value)

    def quantity(self, field_name: str = "quantity") -> int:
        amount = self.money(field_name)
        if not amount or amount <= 0:
            return 1
        return int(amount)

    def warn(self, message: str) -> None:
        self.warnings.append(f"row {self.row_number}: {message}")

    def _check(self, field_name: str, value: Any, convert: Any, kind: str) -> None:
        try:
            convert(value)
        except CoercionError:
            self.warn(
                f"column {self.column_map.get(field_name)} "
                f"({self.column_map.label(field_name)!r}): "
                f"cannot parse {kind} value {value!r}"
            )


def nonzero(value: float | None) -> float | None:
    """Map a zero amount to ``None`` so it reads as "not reported"."""
    return value if value else None


def magnitude(value: float | None) -> float:
    """Absolute value of an optional deduction (sheets often show them negative)."""
    return abs(value) if value else 0.0


class BaseParser(ABC):
    """Abstract base class for order sheet parsers.

    Subclasses set ``name`` and implement recognize(), map_columns() and
    _parse_row(). ``required_fields`` are the columns without which the
    sheet cannot produce a single order.
    """

    name: ClassVar[str] = ""
    required_fields: ClassVar[tuple[str, ...]] = ("platform_order_id", "order_date")

    def __init__(self, config: ParsingConfig | None = None) -> None:
        self.config = config or ParsingConfig()

    @abstractmethod
    def recognize(self, header: Sequence[str]) -> bool:
        """Return True if the normalized header row belongs to this parser."""

    @abstractmethod
    def map_columns(self, header: Sequence[str]) -> ColumnMap:
        """Build the column map for a normalized header row."""

    @abstractmethod
    def _parse_row(self, reader: RowReader) -> NormalizedOrder:
        """Normalize one data row.

        Raises:
            SkipRow: The row has a row-level defect and must be dropped.
        """

    @abstractmethod
    def resolve_marketplace(
        self,
        rows: Sequence[Sequence[Any]],
        column_map: ColumnMap,
        marketplace_hint: str | None = None,
    ) -> MarketplaceName | None:
        """Canonical marketplace of the sheet, or None if it cannot be told."""

    def extract(
        self,
        rows: Sequence[Sequence[Any]],
        column_map: ColumnMap,
    ) -> tuple[list[NormalizedOrder], ParseReport]:
        """Normalize every data row (``rows[1:]``) of the grid.

        Rows are independent: each yields at most one order and the result
        keeps sheet order.
        """
        orders: list[NormalizedOrder] = []
        report = ParseReport()

        for offset, row in enumerate(rows[1:]):
            row_number = offset + 2
            if not row or all(is_blank(cell) for cell in row):
                report.outcomes.append(RowOutcome(row_number, "skipped", "empty row"))
                continue

            reader = RowReader(row, row_number, column_map, strict=self.config.strict_coercion)
            try:
                order = self._parse_row(reader)
            except SkipRow as exc:
                logger.warning("[%s] Row %d skipped: %s", self.name, row_number, exc)
                report.outcomes.append(
                    RowOutcome(
                        row_number,
                        "skipped",
                        str(exc),
                        warnings=reader.warnings,
                        platform_order_id=reader.text("platform_order_id"),
                    )
                )
                continue
            except Exception as exc:
                logger.warning(
                    "[%s] Row %d failed: %s", self.name, row_number, exc, exc_info=True
                )
                report.outcomes.append(
                    RowOutcome(
                        row_number,
                        "error",
                        f"{type(exc).__name__}: {exc}",
                        warnings=reader.warnings,
                    )
                )
                continue

            orders.append(order)
            report.outcomes.append(
                RowOutcome(
                    row_number,
                    "imported",
                    warnings=reader.warnings,
                    platform_order_id=order.platform_order_id,
                )
            )

        return orders, report

    def parse(
        self,
        rows: Sequence[Sequence[Any]],
        marketplace_hint: str | None = None,
    ) -> ParserResult | None:
        """Recognize, map and extract a raw grid.

        Args:
            rows: The raw grid; ``rows[0]`` is the header row.
            marketplace_hint: Caller-supplied marketplace name. Only parsers
                that cannot tell the marketplace from the sheet consult it.

        Returns:
            ParserResult, or None when the sheet is not recognized, lacks a
            mandatory column, or yields no valid row.
        """
        if len(rows) < 2:
            logger.debug("[%s] Sheet has fewer than 2 rows", self.name)
            return None

        header = normalize_header_row(rows[0])
        if not self.recognize(header):
            logger.debug("[%s] Sheet not recognized", self.name)
            return None
        logger.info("[%s] Sheet recognized", self.name)

        column_map = self.map_columns(header)
        logger.debug("[%s] Column map: %s", self.name, column_map.describe())

        missing = [f for f in self.required_fields if f not in column_map]
        if missing:
            logger.warning("[%s] Mandatory columns not found: %s", self.name, missing)
            return None

        marketplace = self.resolve_marketplace(rows, column_map, marketplace_hint)
        if marketplace is None:
            logger.warning("[%s] Could not determine the marketplace", self.name)
            return None

        orders, report = self.extract(rows, column_map)
        logger.info("[%s] %s", self.name, report.summary())
        if not orders:
            logger.warning("[%s] No valid order found in the sheet", self.name)
            return None

        return ParserResult(
            marketplace_name=marketplace,
            normalized_data=orders,
            parser_name=self.name,
            report=report,
        )


class NativeParser(BaseParser):
    """Shared logic for a marketplace's own export layout.

    Recognition rules and column synonyms come from ``<marketplace>.yaml``.
    Subclasses supply the profit semantics through _profit().
    """

    marketplace: ClassVar[MarketplaceName]

    def __init__(
        self,
        config: ParsingConfig | None = None,
        signatures_dir: Path | None = None,
    ) -> None:
        super().__init__(config)
        self.signature = load_signature(self.marketplace, signatures_dir)
        self.synonyms = resolve_synonyms(self.signature, signatures_dir)

    def recognize(self, header: Sequence[str]) -> bool:
        rules = self.signature.recognition
        text = header_text(header)

        excluded = find_phrase(text, rules.exclude)
        if excluded is not None:
            if find_phrase(text, rules.exclude_unless) is None:
                logger.debug("[%s] Rejected: header mentions %r", self.name, excluded)
                return False

        indicator = find_phrase(text, rules.indicators)
        if indicator is not None:
            logger.debug("[%s] Indicator %r found", self.name, indicator)
            return True

        if rules.structural is None:
            return False
        has_order_id = any(matches_any(cell, rules.structural.order_id) for cell in header)
        has_date = any(matches_any(cell, rules.structural.order_date) for cell in header)
        return has_order_id and has_date

    def map_columns(self, header: Sequence[str]) -> ColumnMap:
        return build_column_map(header, self.synonyms)

    def resolve_marketplace(
        self,
        rows: Sequence[Sequence[Any]],
        column_map: ColumnMap,
        marketplace_hint: str | None = None,
    ) -> MarketplaceName | None:
        return self.marketplace

    def _order_id(self, reader: RowReader) -> str | None:
        return reader.text("platform_order_id")

    def _default_platform_name(self) -> str | None:
        return None

    @abstractmethod
    def _profit(
        self,
        reader: RowReader,
        revenue: float,
        deductions: dict[str, float],
    ) -> tuple[float | None, float | None]:
        """Return ``(profit, profit_margin)`` for one row."""

    def _parse_row(self, reader: RowReader) -> NormalizedOrder:
        platform_order_id = self._order_id(reader)
        if not platform_order_id:
            raise SkipRow("order id not found")

        order_date = reader.date("order_date")
        if order_date is None:
            raise SkipRow(f"invalid order date: {reader.cell('order_date')!r}")

        order_value = reader.money("order_value") or 0.0
        revenue = reader.money("revenue") or order_value
        if revenue <= 0:
            raise SkipRow(f"non-positive revenue: {revenue}")

        commissions = magnitude(reader.money("commissions"))
        transaction_fee = magnitude(reader.money("transaction_fee"))
        shipping_fee = magnitude(reader.money("shipping_fee"))
        other_platform_fees = magnitude(reader.money("other_platform_fees"))
        refunds = magnitude(reader.money("refunds"))
        product_cost = magnitude(reader.money("product_cost"))
        total_fees = transaction_fee + shipping_fee + other_platform_fees

        profit, profit_margin = self._profit(
            reader,
            revenue,
            {
                "product_cost": product_cost,
                "commissions": commissions,
                "fees": total_fees,
                "refunds": refunds,
            },
        )
        if profit is not None and profit < 0:
            reader.warn(f"negative profit: {profit:.2f}")

        return NormalizedOrder(
            platform_order_id=platform_order_id,
            external_order_id=reader.text("external_order_id"),
            platform_name=reader.text("platform_name") or self._default_platform_name(),
            store_name=reader.text("store_name"),
            order_date=order_date,
            settlement_date=reader.date("settlement_date"),
            sku=reader.text("sku") or "N/A",
            quantity=reader.quantity(),
            order_value=order_value if order_value > 0 else revenue,
            revenue=revenue,
            product_sales=nonzero(reader.money("product_sales")),
            shipping_fee_buyer=nonzero(reader.money("shipping_fee_buyer")),
            platform_discount=nonzero(reader.money("platform_discount")),
            commissions=nonzero(commissions),
            transaction_fee=nonzero(transaction_fee),
            shipping_fee=nonzero(shipping_fee),
            other_platform_fees=nonzero(other_platform_fees),
            total_fees=total_fees,
            refunds=nonzero(refunds),
            product_cost=nonzero(product_cost),
            fees=total_fees,
            profit=profit,
            profit_margin=profit_margin,
        )


class LegacyProfitParser(NativeParser):
    """Profit recomputed from components: the sheet's revenue is gross.

    ``profit = revenue - product_cost - commissions - fees - refunds`` and
    ``profit_margin = profit / revenue * 100``.
    """

    def _profit(
        self,
        reader: RowReader,
        revenue: float,
        deductions: dict[str, float],
    ) -> tuple[float | None, float | None]:
        profit = revenue - sum(deductions.values())
        return profit, profit / revenue * 100


class SheetProfitParser(NativeParser):
    """Profit and margin taken from the sheet's own columns.

    These exports already embed a vendor-computed profit; a missing column
    leaves the field unset rather than zero.
    """

    def _profit(
        self,
        reader: RowReader,
        revenue: float,
        deductions: dict[str, float],
    ) -> tuple[float | None, float | None]:
        return reader.money("profit"), reader.percentage("profit_margin")
