"""
Internal import orchestration for order-sheet-ingest.

Extracted from ``__init__.py`` so the public ``import_file()`` and the
CLI reuse the same upload -> grid -> detection -> store sequence.

This module is **not** part of the public API.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from order_sheet_ingest.config import ImportConfig, UploadConfig
from order_sheet_ingest.detect import parse_orders
from order_sheet_ingest.exceptions import InvalidUploadError, PersistenceError
from order_sheet_ingest.grid import read_grid
from order_sheet_ingest.models import MarketplaceName, ParseReport
from order_sheet_ingest.store import OrderStore

logger = logging.getLogger(__name__)


class ImportSummary(BaseModel):
    """Outcome of one file import.

    ``to_response()`` gives the JSON body an upload endpoint returns:
    ``{success, message, marketplace, orderCount, skipped, totalProcessed}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    marketplace: MarketplaceName
    order_count: int = Field(..., alias="orderCount")
    skipped: int
    total_processed: int = Field(..., alias="totalProcessed")
    import_id: str = Field("", exclude=True)
    store_id: str = Field("", exclude=True)
    parser_name: str = Field("", exclude=True)

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)


def validate_upload(path: Path, upload: UploadConfig) -> None:
    """Reject a file before it is opened.

    Raises:
        InvalidUploadError: Missing file, extension not allowed, empty
            file, or larger than ``upload.max_file_size_bytes``.
    """
    if not path.is_file():
        raise InvalidUploadError(f"File not found: {path}")
    if path.suffix.lower() not in upload.allowed_extensions:
        raise InvalidUploadError(
            f"Unsupported file type '{path.suffix}': send an Excel file "
            f"({' or '.join(upload.allowed_extensions)})"
        )
    size = path.stat().st_size
    if size == 0:
        raise InvalidUploadError(f"File is empty: {path.name}")
    if size > upload.max_file_size_bytes:
        raise InvalidUploadError(
            f"File too large: {path.name} is {size / 1024 / 1024:.1f} MB, "
            f"the limit is {upload.max_file_size_bytes / 1024 / 1024:.0f} MB"
        )


def run_import(
    path: str | Path,
    config: ImportConfig,
    store: str | None = None,
    marketplace_hint: str | None = None,
    order_store: OrderStore | None = None,
) -> tuple[ImportSummary, ParseReport]:
    """Import one workbook into the order store.

    Steps:
      1. Validate the upload (extension, size, non-empty).
      2. Read and normalize the first worksheet into a raw grid.
      3. Detect the marketplace and normalize the rows.
      4. Resolve the store, open an import job, save, close the job.

    Args:
        path: The uploaded workbook.
        config: The validated ImportConfig.
        store: Store id or name; None attributes the import to the
            marketplace's default store.
        marketplace_hint: Optional caller-supplied marketplace name.
        order_store: Override the store built from ``config.storage``.

    Returns:
        The ImportSummary and the row-level ParseReport.

    Raises:
        InvalidUploadError: If the file is rejected or unreadable.
        UnknownFormatError: If no parser recognizes the sheet.
        PersistenceError: If nothing could be stored.
    """
    path = Path(path)
    validate_upload(path, config.upload)

    # 1-2. Grid
    rows = read_grid(path, skip_leading_rows=config.upload.skip_leading_rows)
    logger.info("Processing %d rows from %s", len(rows), path.name)

    # 3. Detection
    result = parse_orders(rows, marketplace_hint=marketplace_hint, config=config)

    # 4. Persistence
    order_store = order_store or OrderStore.from_config(config.storage)
    store_id = order_store.resolve_store(store, result.marketplace_name)
    import_id = order_store.start_import(store_id, result.marketplace_name, path.name)
    saved = order_store.save(result, store_id, import_id)

    total = len(result.normalized_data)
    message = (
        f"File from marketplace '{result.marketplace_name}' processed. "
        f"{saved.inserted} orders imported, {saved.skipped} skipped."
    )
    if saved.status == "failed":
        order_store.finish_import(saved, total)
        raise PersistenceError(
            f"No order from {path.name} could be stored: " + "; ".join(saved.errors[:5])
        )
    order_store.finish_import(saved, total, message)

    summary = ImportSummary(
        success=True,
        message=message,
        marketplace=result.marketplace_name,
        order_count=saved.inserted,
        skipped=saved.skipped,
        total_processed=total,
        import_id=import_id,
        store_id=store_id,
        parser_name=result.parser_name,
    )
    logger.info("Import complete: %s", message)
    return summary, result.report
