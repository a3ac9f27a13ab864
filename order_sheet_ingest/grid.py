"""
Raw grid extraction for order-sheet-ingest.

Turns the first worksheet of an uploaded workbook into the raw grid the
parsers consume: a list of rows, each a list of plain Python cell values
(``str``, ``int``, ``float``, ``datetime`` or ``None``), with the header
as row 0.

Reading uses ``pandas.read_excel(header=None, dtype=object)`` so no cell
is reinterpreted: openpyxl handles ``.xlsx``, xlrd handles ``.xls``.

Normalization (``normalize_grid``), applied before detection:
1. Drop the leading banner row(s) some exports put above the header.
2. Drop the first column when it is empty in every remaining row (some
   exports indent the table by one column).
3. Drop rows whose cells are all empty.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from order_sheet_ingest.coercion import is_blank
from order_sheet_ingest.exceptions import InvalidUploadError

logger = logging.getLogger(__name__)

_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}


def _to_python(value: Any) -> Any:
    """Convert a pandas / numpy cell to a plain Python value."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


def frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    """Convert a header-less DataFrame to a list of plain-Python rows."""
    return [[_to_python(v) for v in row] for row in df.itertuples(index=False, name=None)]


def normalize_grid(
    rows: Sequence[Sequence[Any]],
    skip_leading_rows: int = 1,
) -> list[list[Any]]:
    """Apply the pre-detection clean-up to a raw grid.

    Args:
        rows: Rows as read from the worksheet.
        skip_leading_rows: Banner rows above the header to drop.

    Returns:
        A new grid; the input is not modified.
    """
    grid = [list(row) for row in rows[skip_leading_rows:]]

    if grid and all(not row or is_blank(row[0]) for row in grid):
        grid = [row[1:] for row in grid]
        logger.debug("Dropped empty leading column")

    return [row for row in grid if any(not is_blank(cell) for cell in row)]


def read_grid(
    path: str | Path,
    skip_leading_rows: int = 1,
) -> list[list[Any]]:
    """Read the first worksheet of a workbook into a normalized raw grid.

    Raises:
        InvalidUploadError: If the extension is unsupported, the workbook
            cannot be opened, or no row is left after normalization.
    """
    path = Path(path)
    engine = _ENGINES.get(path.suffix.lower())
    if engine is None:
        raise InvalidUploadError(
            f"Unsupported file type '{path.suffix}': send an Excel file (.xlsx or .xls)"
        )

    try:
        df = pd.read_excel(path, sheet_name=0, header=None, dtype=object, engine=engine)
    except Exception as exc:
        raise InvalidUploadError(f"Could not read workbook {path.name}: {exc}") from exc

    grid = normalize_grid(frame_to_rows(df), skip_leading_rows=skip_leading_rows)
    if not grid:
        raise InvalidUploadError(
            f"No data found in {path.name}: check that the sheet has rows "
            "besides the header"
        )
    logger.info(
        "Read %s: %d rows x %d columns (after clean-up)",
        path.name, len(grid), max(len(r) for r in grid),
    )
    return grid
