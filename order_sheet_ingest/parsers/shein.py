"""
Shein seller-center export parser.

Shein's "Valor de Liquidação" is read as the gross revenue of the order
and commissions, shipping service fees and other costs are listed
separately, so profit is recomputed from components.
"""

from __future__ import annotations

from order_sheet_ingest.parsers.base import LegacyProfitParser


class SheinParser(LegacyProfitParser):
    name = "shein"
    marketplace = "shein"
