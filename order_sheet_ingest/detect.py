"""
Format detection for marketplace order sheets.

Tries each parser against the raw grid in a fixed priority order:
meli -> shopee -> shein -> tiktok, then the aggregator fallback.

Design: Strategy Pattern
- Every parser implements BaseParser.parse(); the first one that returns
  a ParserResult wins (no scoring across parsers).
- Recognition rules and column synonyms live in signatures/*.yaml, so a
  new synonym or exclusion phrase needs no code change.

Detection algorithm:
1. For each native parser, in order:
   a. recognize the header row (exclusion phrases, indicators, structure),
   b. map the columns and check the mandatory ones,
   c. extract the rows; zero valid rows counts as "no match".
2. Try the aggregator parser the same way.
3. Nothing matched: detect_and_parse() returns None and parse_orders()
   raises UnknownFormatError.

A parser raising during any step is logged and treated as "no match", so
a defect in one parser never keeps the others from being tried.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from order_sheet_ingest.columns import header_text, normalize_header_row
from order_sheet_ingest.config import ImportConfig, ParsingConfig
from order_sheet_ingest.exceptions import UnknownFormatError
from order_sheet_ingest.models import ParserResult
from order_sheet_ingest.parsers.aggregator import AggregatorParser
from order_sheet_ingest.parsers.base import BaseParser
from order_sheet_ingest.parsers.meli import MeliParser
from order_sheet_ingest.parsers.shein import SheinParser
from order_sheet_ingest.parsers.shopee import ShopeeParser
from order_sheet_ingest.parsers.tiktok import TikTokParser

logger = logging.getLogger(__name__)

# Native parsers in detection priority order
NATIVE_PARSERS: tuple[type[BaseParser], ...] = (
    MeliParser,
    ShopeeParser,
    SheinParser,
    TikTokParser,
)


def build_parsers(config: ParsingConfig | None = None) -> list[BaseParser]:
    """Instantiate the detection chain: natives first, aggregator last."""
    parsing = config or ParsingConfig()
    parsers: list[BaseParser] = [cls(parsing) for cls in NATIVE_PARSERS]
    parsers.append(AggregatorParser(parsing))
    return parsers


def _parsing_config(config: ImportConfig | ParsingConfig | None) -> ParsingConfig:
    if isinstance(config, ImportConfig):
        return config.parsing
    return config or ParsingConfig()


def detect_and_parse(
    rows: Sequence[Sequence[Any]],
    marketplace_hint: str | None = None,
    config: ImportConfig | ParsingConfig | None = None,
    parsers: Sequence[BaseParser] | None = None,
) -> ParserResult | None:
    """Detect the sheet's format and normalize its rows.

    Args:
        rows: The raw grid; ``rows[0]`` is the header row.
        marketplace_hint: Optional marketplace name from the caller. Only
            the aggregator consults it, for unrecognized platform labels.
        config: Parsing settings (or a whole ImportConfig).
        parsers: Override the detection chain (tests).

    Returns:
        The first successful ParserResult, or None if no parser matched.
    """
    if not rows:
        logger.warning("Empty grid: nothing to detect")
        return None

    if parsers is None:
        parsers = build_parsers(_parsing_config(config))

    for parser in parsers:
        try:
            result = parser.parse(rows, marketplace_hint)
        except Exception:
            logger.exception("Parser '%s' failed; trying the next one", parser.name)
            continue
        if result is not None:
            logger.info(
                "Detected '%s' via parser '%s': %d orders",
                result.marketplace_name, parser.name, len(result.normalized_data),
            )
            return result

    logger.error("No parser matched the sheet (%d rows)", len(rows))
    return None


def parse_orders(
    rows: Sequence[Sequence[Any]],
    marketplace_hint: str | None = None,
    config: ImportConfig | ParsingConfig | None = None,
    parsers: Sequence[BaseParser] | None = None,
) -> ParserResult:
    """Like detect_and_parse(), but a total failure raises.

    Raises:
        UnknownFormatError: If no parser matched. The message carries the
            header text and the row count for the operator.
    """
    result = detect_and_parse(rows, marketplace_hint, config, parsers)
    if result is not None:
        return result

    header = header_text(normalize_header_row(rows[0])) if rows else ""
    data_rows = max(len(rows) - 1, 0)
    raise UnknownFormatError(
        "Could not detect the marketplace of this sheet.\n"
        f"Data rows: {data_rows}\n"
        f"Header: {header or '(empty)'}\n"
        "Check that the first row holds the column names of a Mercado Livre, "
        "Shopee, Shein, TikTok Shop or hub (Plataforma / Nº de Pedido de "
        "Plataforma) export.",
        header=header,
        row_count=data_rows,
    )
