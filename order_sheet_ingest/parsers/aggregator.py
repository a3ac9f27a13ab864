"""
Aggregator parser for hub exports (UpSeller and similar tools).

A hub export mixes orders from several marketplaces in one sheet and is
recognized by three columns rather than by marketplace wording:

- a platform column ("Plataforma", never "Nº de Pedido de Plataforma"),
- a platform order number column ("Nº de Pedido de Plataforma"),
- a date-like column ("Ordenado", "Liquidação", "Data", ...).

The marketplace is inferred from the values of the platform column,
sampled top-down until one is recognized.

Revenue in these exports is already net of platform fees and commissions:

    profit = base_revenue - product_cost - refunds

Commissions and fees are captured for display only. ``profit_margin`` is
taken over the gross order value when there is one, else over the base
revenue.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from order_sheet_ingest.columns import (
    ColumnMap,
    SynonymTable,
    build_column_map,
    matches_any,
    normalize_header,
)
from order_sheet_ingest.config import ParsingConfig
from order_sheet_ingest.models import MARKETPLACES, MarketplaceName, NormalizedOrder
from order_sheet_ingest.parsers.base import BaseParser, RowReader, SkipRow, magnitude, nonzero
from order_sheet_ingest.signature_registry import AggregatorSignature, load_aggregator_signature

logger = logging.getLogger(__name__)

# Candidate columns for the base revenue, in priority order
_REVENUE_FIELDS = ("revenue", "product_sales", "order_value")


def infer_marketplace(
    label: Any,
    signature: AggregatorSignature | None = None,
) -> MarketplaceName | None:
    """Map a platform cell value ("Mercado Livre", "Shopee BR", ...) to a marketplace.

    The label is lower-cased and accent-folded, then matched against the
    ordered alias substrings of ``aggregator.yaml``. Returns None when no
    alias matches.
    """
    signature = signature or load_aggregator_signature()
    text = normalize_header(label)
    if not text:
        return None
    for alias in signature.platform_aliases:
        if any(term in text for term in alias.contains):
            return alias.marketplace
    return None


class AggregatorParser(BaseParser):
    """Fallback parser for multi-marketplace hub exports."""

    name = "aggregator"
    required_fields = ("platform", "platform_order_id", "order_date")

    def __init__(
        self,
        config: ParsingConfig | None = None,
        signatures_dir: Path | None = None,
    ) -> None:
        super().__init__(config)
        self.signature = load_aggregator_signature(signatures_dir)
        acceptance = self.signature.acceptance
        self.synonyms: SynonymTable = {
            **{k: tuple(v) for k, v in self.signature.columns.items()},
            "platform": tuple(acceptance.platform),
            "platform_order_id": tuple(acceptance.platform_order_id),
            "order_date": tuple(acceptance.order_date),
        }

    def recognize(self, header: Sequence[str]) -> bool:
        acceptance = self.signature.acceptance
        checks = {
            "platform": acceptance.platform,
            "platform_order_id": acceptance.platform_order_id,
            "order_date": acceptance.order_date,
        }
        missing = [
            name
            for name, matchers in checks.items()
            if not any(matches_any(cell, matchers) for cell in header)
        ]
        if missing:
            logger.debug("[%s] Acceptance columns missing: %s", self.name, missing)
            return False
        return True

    def map_columns(self, header: Sequence[str]) -> ColumnMap:
        return build_column_map(header, self.synonyms)

    def resolve_marketplace(
        self,
        rows: Sequence[Sequence[Any]],
        column_map: ColumnMap,
        marketplace_hint: str | None = None,
    ) -> MarketplaceName | None:
        """Infer the marketplace from the sampled platform column.

        - The first recognizable value wins.
        - No non-empty value at all: None (the sheet is rejected).
        - Values present but none recognized: the caller's hint when it
          names a marketplace, else the configured default. Logged as a
          warning since the attribution is a guess.
        """
        index = column_map.get("platform")
        sample: str | None = None
        for row in rows[1:]:
            if index is None or index >= len(row):
                continue
            value = row[index]
            if value is None or not str(value).strip():
                continue
            if sample is None:
                sample = str(value).strip()
            marketplace = infer_marketplace(value, self.signature)
            if marketplace is not None:
                logger.info(
                    "[%s] Marketplace '%s' inferred from platform value %r",
                    self.name, marketplace, str(value).strip(),
                )
                return marketplace

        if sample is None:
            logger.error("[%s] Platform column has no value in any row", self.name)
            return None

        hint = (marketplace_hint or "").strip().lower()
        fallback = hint if hint in MARKETPLACES else self.config.aggregator_default_marketplace
        logger.warning(
            "[%s] Unrecognized platform value %r; assuming '%s'",
            self.name, sample, fallback,
        )
        return fallback

    def _base_revenue(self, reader: RowReader) -> float | None:
        for field_name in _REVENUE_FIELDS:
            if reader.has(field_name) and reader.text(field_name) is not None:
                return reader.money(field_name)
        return None

    def _parse_row(self, reader: RowReader) -> NormalizedOrder:
        platform_order_id = reader.text("platform_order_id")
        if not platform_order_id:
            raise SkipRow("order id not found")

        order_date = reader.date("order_date")
        if order_date is None:
            raise SkipRow(f"invalid order date: {reader.cell('order_date')!r}")

        base_revenue = self._base_revenue(reader)
        if base_revenue is None or base_revenue <= 0:
            raise SkipRow(f"non-positive revenue: {base_revenue}")

        order_value = reader.money("order_value") or 0.0
        product_cost = magnitude(reader.money("product_cost"))
        refunds = magnitude(reader.money("refunds"))
        commissions = magnitude(reader.money("commissions"))
        transaction_fee = magnitude(reader.money("transaction_fee"))
        service_fee = magnitude(reader.money("service_fee"))
        shipping_fee = magnitude(reader.money("shipping_fee"))
        other_platform_fees = magnitude(reader.money("other_platform_fees"))
        total_fees = transaction_fee + service_fee + shipping_fee + other_platform_fees

        profit = base_revenue - product_cost - refunds
        margin_base = order_value if order_value > 0 else base_revenue
        if profit < 0:
            reader.warn(f"negative profit: {profit:.2f}")

        return NormalizedOrder(
            platform_order_id=platform_order_id,
            external_order_id=reader.text("external_order_id"),
            platform_name=reader.text("platform"),
            store_name=reader.text("store_name"),
            order_date=order_date,
            settlement_date=reader.date("settlement_date"),
            sku=reader.text("sku") or "N/A",
            quantity=reader.quantity(),
            order_value=order_value if order_value > 0 else base_revenue,
            revenue=base_revenue,
            product_sales=nonzero(reader.money("product_sales")),
            shipping_fee_buyer=nonzero(reader.money("shipping_fee_buyer")),
            platform_discount=nonzero(reader.money("platform_discount")),
            commissions=nonzero(commissions),
            transaction_fee=nonzero(transaction_fee),
            shipping_fee=nonzero(shipping_fee),
            other_platform_fees=nonzero(other_platform_fees + service_fee),
            total_fees=total_fees,
            refunds=nonzero(refunds),
            product_cost=nonzero(product_cost),
            fees=total_fees,
            profit=profit,
            profit_margin=profit / margin_base * 100,
        )
