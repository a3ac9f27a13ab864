"""
Configuration models and YAML I/O for order-sheet-ingest.

This module defines the Pydantic models that map 1:1 to orderconfig.yaml,
plus helper functions for loading and saving the config.

Key models:
- ImportConfig: Top-level config (parsing + upload + storage).
- ParsingConfig: Coercion strictness and the aggregator's fallback marketplace.
- UploadConfig: Accepted file extensions, size limit, banner rows to drop.
- StorageConfig: Output directory and table format of the order store.

Key functions:
- load_config(path) -> ImportConfig: Load and validate from YAML.
- save_config(config, path): Serialize to YAML.

Every field has a default, so ``ImportConfig()`` is a working
configuration and a YAML file only needs the keys it changes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from order_sheet_ingest.exceptions import ConfigValidationError
from order_sheet_ingest.models import MarketplaceName

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


class ParsingConfig(BaseModel):
    """Detection and coercion settings."""

    strict_coercion: bool = Field(
        False,
        description=(
            "If True, unparseable money/date/percentage cells are recorded as "
            "row warnings (row, column, header). Values still degrade to 0/absent."
        ),
    )
    aggregator_default_marketplace: MarketplaceName = Field(
        "meli",
        description=(
            "Marketplace assumed for a hub export whose platform column holds "
            "values that match no known marketplace"
        ),
    )


class UploadConfig(BaseModel):
    """Upload validation settings."""

    max_file_size_bytes: int = Field(
        DEFAULT_MAX_FILE_SIZE, gt=0, description="Largest accepted workbook, in bytes"
    )
    allowed_extensions: list[str] = Field(
        default_factory=lambda: [".xlsx", ".xls"],
        description="Accepted workbook extensions",
    )
    skip_leading_rows: int = Field(
        1, ge=0, description="Banner rows above the header row to drop"
    )

    @field_validator("allowed_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("allowed_extensions must not be empty")
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value]


class StorageConfig(BaseModel):
    """Order store settings."""

    output_dir: str = Field("orders_db/", description="Directory for the order tables")
    output_format: Literal["csv", "parquet"] = Field(
        "parquet", description="Table file format"
    )


class ImportConfig(BaseModel):
    """Top-level configuration for order-sheet-ingest.

    Maps 1:1 to orderconfig.yaml.
    """

    parsing: ParsingConfig = Field(default_factory=ParsingConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def load_config(path: str | Path) -> ImportConfig:
    """Load and validate orderconfig.yaml into an ImportConfig model.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigValidationError: If the file is empty or fails schema validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        raise ConfigValidationError(f"Config file is empty: {path}")
    try:
        config = ImportConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid config file {path}: {exc}") from exc
    logger.info("Loaded config from %s", path)
    return config


def save_config(config: ImportConfig, path: str | Path) -> None:
    """Serialize an ImportConfig to YAML.

    Writes a human-readable YAML file with a header comment.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    with open(path, "w", encoding="utf-8") as f:
        f.write("# order-sheet-ingest configuration\n")
        f.write(
            "# Edit this file to change upload limits, storage format, etc.\n\n"
        )
        yaml.dump(
            data,
            f,
            allow_unicode=True,
            default_flow_style=False,
            sort_keys=False,
        )
    logger.info("Saved config to %s", path)
