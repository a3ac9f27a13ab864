"""
Core data models for order-sheet-ingest.

- ``NormalizedOrder``: one order row, normalized across marketplaces
  (identity, dates, financial figures). Pydantic enforces the emission
  invariant: a non-empty ``platform_order_id`` and a valid ``order_date``.
- ``RowOutcome`` / ``ParseReport``: what happened to every data row
  (imported, skipped, error) plus strict-mode coercion warnings.
- ``ParserResult``: the orchestrator's unit of output.

All monetary amounts are in the sheet's native currency; no conversion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

MarketplaceName = Literal["meli", "shopee", "shein", "tiktok"]

MARKETPLACES: tuple[str, ...] = get_args(MarketplaceName)

RowStatus = Literal["imported", "skipped", "error"]


class NormalizedOrder(BaseModel):
    """Canonical per-row output record.

    ``fees`` is the legacy aggregate of non-commission fees and mirrors
    ``total_fees``. ``profit_margin`` is in percentage points (15.0 == 15%).
    Financial fields left as ``None`` mean "not available in this sheet",
    which is different from a computed zero.
    """

    model_config = ConfigDict(frozen=True)

    platform_order_id: str = Field(..., min_length=1)
    external_order_id: str | None = None
    platform_name: str | None = None
    store_name: str | None = None
    order_date: datetime
    settlement_date: datetime | None = None
    sku: str = "N/A"
    quantity: int = 1

    order_value: float
    revenue: float | None = None
    product_sales: float | None = None

    shipping_fee_buyer: float | None = None
    platform_discount: float | None = None
    commissions: float | None = None
    transaction_fee: float | None = None
    shipping_fee: float | None = None
    other_platform_fees: float | None = None
    total_fees: float | None = None

    refunds: float | None = None
    product_cost: float | None = None
    fees: float | None = None
    profit: float | None = None
    profit_margin: float | None = None

    @field_validator("platform_order_id")
    @classmethod
    def _strip_order_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("platform_order_id must not be blank")
        return value


@dataclass
class RowOutcome:
    """Result of normalizing one data row.

    Attributes:
        row_number: 1-based position in the grid (the header is row 1).
        status: ``imported``, ``skipped`` (row-level defect such as a
            missing id, bad date or non-positive revenue) or ``error``
            (the row raised while being parsed).
        message: Why the row was skipped / failed; empty when imported.
        warnings: Strict-mode coercion warnings for this row.
        platform_order_id: The id read from the row, when there was one.
    """

    row_number: int
    status: RowStatus
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    platform_order_id: str | None = None


@dataclass
class ParseReport:
    """Per-row bookkeeping for one parser run."""

    outcomes: list[RowOutcome] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.outcomes)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "imported")

    @property
    def skipped_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "skipped")

    @property
    def error_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "error")

    @property
    def warnings(self) -> list[str]:
        return [w for o in self.outcomes for w in o.warnings]

    def summary(self) -> str:
        return (
            f"{self.success_count} imported, {self.skipped_count} skipped, "
            f"{self.error_count} errors out of {self.total_rows} rows"
        )


@dataclass
class ParserResult:
    """Output of a successful detection.

    Attributes:
        marketplace_name: Canonical marketplace identifier. Distinct from
            the human label in ``NormalizedOrder.platform_name``.
        normalized_data: The emitted orders, in sheet order.
        parser_name: The parser that produced the result: a marketplace
            name for native layouts, or ``"aggregator"``.
        report: Row-level outcomes of that parser run.
    """

    marketplace_name: MarketplaceName
    normalized_data: list[NormalizedOrder]
    parser_name: str = ""
    report: ParseReport = field(default_factory=ParseReport)
