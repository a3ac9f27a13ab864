"""
Parsers sub-package for order-sheet-ingest.

Contains the sheet parsers that turn a raw grid into NormalizedOrder
records.

Design: Strategy Pattern
- base.py defines the BaseParser ABC plus NativeParser and the two profit
  conventions (LegacyProfitParser, SheetProfitParser).
- meli.py, shopee.py, shein.py, tiktok.py implement the native layouts.
- aggregator.py implements AggregatorParser for multi-marketplace hub
  exports.

The orchestrator (detect.py) tries the native parsers in a fixed order
and falls back to the aggregator.
"""

from order_sheet_ingest.parsers.aggregator import AggregatorParser, infer_marketplace
from order_sheet_ingest.parsers.base import BaseParser, NativeParser
from order_sheet_ingest.parsers.meli import MeliParser
from order_sheet_ingest.parsers.shein import SheinParser
from order_sheet_ingest.parsers.shopee import ShopeeParser
from order_sheet_ingest.parsers.tiktok import TikTokParser

__all__ = [
    "AggregatorParser",
    "BaseParser",
    "MeliParser",
    "NativeParser",
    "SheinParser",
    "ShopeeParser",
    "TikTokParser",
    "infer_marketplace",
]
