"""
Shopee native order export parser.

The export carries a vendor-computed "Lucro" and "Margem de Lucro"; both
are taken as-is. The fee breakdown (commission, transaction fee,
shipping, platform discount) is kept for display only.
"""

from __future__ import annotations

from order_sheet_ingest.parsers.base import SheetProfitParser


class ShopeeParser(SheetProfitParser):
    name = "shopee"
    marketplace = "shopee"
