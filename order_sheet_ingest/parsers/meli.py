"""
Mercado Livre native sales export parser.

Meli reports gross revenue with every deduction in its own column, so
profit is recomputed (see LegacyProfitParser). Two layout quirks:

- Sheets re-exported from an ERP sometimes leave the sale number blank
  and carry only the ERP's own id; that id then identifies the order.
- The export has no platform column, so ``platform_name`` defaults to
  "Mercado Livre".
"""

from __future__ import annotations

from order_sheet_ingest.parsers.base import LegacyProfitParser, RowReader


class MeliParser(LegacyProfitParser):
    """Parser for Mercado Livre "Vendas" reports."""

    name = "meli"
    marketplace = "meli"

    def _order_id(self, reader: RowReader) -> str | None:
        return reader.text("platform_order_id") or reader.text("external_order_id")

    def _default_platform_name(self) -> str | None:
        return "Mercado Livre"
