"""
TikTok Shop order export parser.

Like Shopee, profit and margin come from the sheet's own columns and are
left unset when the export does not carry them.
"""

from __future__ import annotations

from order_sheet_ingest.parsers.base import SheetProfitParser


class TikTokParser(SheetProfitParser):
    name = "tiktok"
    marketplace = "tiktok"
