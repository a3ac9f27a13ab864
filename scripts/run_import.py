"""
Demo script: import marketplace order exports via the public API.

Usage:
    uv run python scripts/run_import.py inputs/vendas_meli.xlsx
    uv run python scripts/run_import.py inputs/*.xlsx --store "Loja Centro"
    uv run python scripts/run_import.py inputs/upseller.xlsx --marketplace shopee
    uv run python scripts/run_import.py inputs/pedidos.xlsx --config orderconfig.yaml

Each file is imported into the order store configured in orderconfig.yaml
(``orders_db/`` by default). Orders already stored for the store are
skipped, so re-running the script is safe.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("run_import")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    import order_sheet_ingest
    from order_sheet_ingest.exceptions import OrderSheetIngestError

    parser = argparse.ArgumentParser(description="Import marketplace order spreadsheets.")
    parser.add_argument("files", nargs="+", help=".xlsx / .xls exports to import")
    parser.add_argument("--store", help="store id or name (default: one store per marketplace)")
    parser.add_argument("--marketplace", help="hint for hub exports: meli, shopee, shein, tiktok")
    parser.add_argument("--config", help="path to orderconfig.yaml")
    args = parser.parse_args()

    config = (
        order_sheet_ingest.load_config(args.config)
        if args.config
        else order_sheet_ingest.ImportConfig()
    )

    failures = 0
    for input_path in args.files:
        if not Path(input_path).exists():
            log.warning("SKIP  %s  (file not found)", input_path)
            continue

        log.info("=" * 70)
        log.info("Importing: %s", input_path)
        log.info("=" * 70)

        try:
            summary = order_sheet_ingest.import_file(
                input_path,
                store=args.store,
                marketplace_hint=args.marketplace,
                config=config,
            )
        except OrderSheetIngestError as exc:
            failures += 1
            log.error("FAILED  %s\n%s", input_path, exc)
            continue

        log.info("  %s", json.dumps(summary.to_response(), ensure_ascii=False))
        log.info("Done: %s\n", input_path)

    log.info("All files processed (%d failed).", failures)
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
