"""
order-sheet-ingest: Python library for ingesting marketplace order exports.

Turns Mercado Livre, Shopee, Shein and TikTok Shop order spreadsheets, and
multi-marketplace hub exports (UpSeller and similar), into one normalized
order-with-financials record per row.

Public API surface:

- ``import_file(path, ...)`` -- **recommended entry point**. Validates the
  upload, reads the first worksheet, detects the marketplace, stores the
  orders, and returns an ``ImportSummary``.

- ``detect_and_parse(rows, ...)`` -- the detection core over an in-memory
  grid. Returns a ``ParserResult`` or ``None``.

- ``parse_orders(rows, ...)`` -- same, but raises ``UnknownFormatError``
  when no parser matches.

- ``read_grid(path)`` -- the raw grid of a workbook, as the parsers see it.

- ``OrderStore`` -- the file-backed order tables (read side included).
"""

from __future__ import annotations

import logging
from pathlib import Path

from order_sheet_ingest._pipeline import ImportSummary, run_import
from order_sheet_ingest.config import ImportConfig, load_config, save_config
from order_sheet_ingest.detect import detect_and_parse, parse_orders
from order_sheet_ingest.grid import read_grid
from order_sheet_ingest.models import NormalizedOrder, ParseReport, ParserResult
from order_sheet_ingest.store import OrderStore

__all__ = [
    "ImportConfig",
    "ImportSummary",
    "NormalizedOrder",
    "OrderStore",
    "ParseReport",
    "ParserResult",
    "detect_and_parse",
    "import_file",
    "load_config",
    "parse_orders",
    "read_grid",
    "save_config",
]

logger = logging.getLogger(__name__)


def import_file(
    path: str | Path,
    store: str | None = None,
    marketplace_hint: str | None = None,
    config: ImportConfig | None = None,
    config_path: str | Path | None = None,
) -> ImportSummary:
    """Import one marketplace export into the order store.

    Args:
        path: The ``.xlsx`` / ``.xls`` workbook.
        store: Store id or name the orders belong to. If ``None``, the
            marketplace's default store is used (created on first use).
        marketplace_hint: Optional marketplace name (``meli``, ``shopee``,
            ``shein``, ``tiktok``). Only consulted for hub exports whose
            platform column holds an unrecognized label.
        config: Settings to use. Takes precedence over *config_path*.
        config_path: Path to an ``orderconfig.yaml``. If neither *config*
            nor *config_path* is given, defaults are used.

    Returns:
        An ``ImportSummary``; ``summary.to_response()`` is the JSON body an
        upload endpoint returns.

    Raises:
        InvalidUploadError: If the file is rejected or unreadable.
        UnknownFormatError: If the sheet matches no known export.
        PersistenceError: If no order could be stored.

    Examples::

        summary = order_sheet_ingest.import_file(
            "uploads/vendas_janeiro.xlsx",
            store="Loja Centro",
        )
        print(summary.to_response())

        store = order_sheet_ingest.OrderStore("orders_db/")
        df = store.load_orders(date_from="2024-01-01", date_to="2024-01-31")
    """
    if config is None:
        config = load_config(config_path) if config_path is not None else ImportConfig()
    logger.info("import_file() -- path=%s, store=%s", path, store)
    summary, _report = run_import(path, config, store=store, marketplace_hint=marketplace_hint)
    return summary
