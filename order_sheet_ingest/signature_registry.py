"""
Signature loader for order-sheet-ingest.

Loads the marketplace signature YAML files from
``order_sheet_ingest/signatures/`` and exposes them as Pydantic models.

- ``columns.yaml``: the generic column synonym table (canonical field ->
  ordered matchers), shared by parsers that inherit it.
- ``<marketplace>.yaml``: one per native parser. Holds the sheet
  recognition rules (exclusion phrases, indicator phrases, optional
  structural check) and the marketplace's own column table.
- ``aggregator.yaml``: the hub-export acceptance columns, the platform
  label aliases used for marketplace inference, and its column table.

Why YAML instead of hardcoded:
- New synonyms or exclusion phrases are a one-line data change; the
  parsing logic never has to be touched.
- Exclusion rules between look-alike marketplaces sit side by side and
  are easy to review.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from order_sheet_ingest.columns import Matcher, normalize_header
from order_sheet_ingest.exceptions import SignatureError
from order_sheet_ingest.models import MarketplaceName

logger = logging.getLogger(__name__)

# Directory containing signature YAML files (sibling package)
_SIGNATURES_DIR = Path(__file__).parent / "signatures"


def _normalize_phrases(values: list[str]) -> list[str]:
    return [normalize_header(v) for v in values]


class StructuralCheck(BaseModel):
    """Recognize a sheet by column shape: an order-id-like AND a date-like column."""

    order_id: list[Matcher]
    order_date: list[Matcher]


class Recognition(BaseModel):
    """Sheet recognition rules, evaluated against the joined header text.

    Order of evaluation:
      1. Any ``exclude`` phrase present -> reject, unless an
         ``exclude_unless`` phrase is present too.
      2. Any ``indicators`` phrase present -> accept.
      3. ``structural`` check (if configured) decides.
    """

    exclude: list[str] = Field(default_factory=list)
    exclude_unless: list[str] = Field(default_factory=list)
    indicators: list[str] = Field(default_factory=list)
    structural: StructuralCheck | None = None

    @field_validator("exclude", "exclude_unless", "indicators")
    @classmethod
    def _normalize(cls, value: list[str]) -> list[str]:
        return _normalize_phrases(value)


class MarketplaceSignature(BaseModel):
    """A native marketplace layout loaded from YAML."""

    name: MarketplaceName
    description: str = ""
    recognition: Recognition = Field(default_factory=Recognition)
    inherit_generic_columns: bool = False
    columns: dict[str, list[Matcher]] = Field(default_factory=dict)


class AggregatorAcceptance(BaseModel):
    """The three columns a hub export must carry to be accepted."""

    platform: list[Matcher]
    platform_order_id: list[Matcher]
    order_date: list[Matcher]


class PlatformAlias(BaseModel):
    """Platform-cell substrings that identify one marketplace."""

    marketplace: MarketplaceName
    contains: list[str]

    @field_validator("contains")
    @classmethod
    def _normalize(cls, value: list[str]) -> list[str]:
        return _normalize_phrases(value)


class AggregatorSignature(BaseModel):
    """The generic hub-export layout loaded from ``aggregator.yaml``."""

    name: str = "aggregator"
    description: str = ""
    acceptance: AggregatorAcceptance
    platform_aliases: list[PlatformAlias]
    columns: dict[str, list[Matcher]] = Field(default_factory=dict)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise SignatureError(f"Signature file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, dict):
        raise SignatureError(f"Signature file is empty or not a mapping: {path}")
    return raw


def _validate(model: type[BaseModel], raw: dict[str, Any], path: Path) -> Any:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise SignatureError(f"Invalid signature file {path.name}: {exc}") from exc


@lru_cache(maxsize=None)
def load_generic_columns(signatures_dir: Path | None = None) -> dict[str, tuple[Matcher, ...]]:
    """Load the shared synonym table from ``columns.yaml``."""
    path = (signatures_dir or _SIGNATURES_DIR) / "columns.yaml"
    raw = _read_yaml(path)
    table = raw.get("columns")
    if not isinstance(table, dict):
        raise SignatureError(f"{path.name} must define a 'columns' mapping")
    try:
        columns = {
            field_name: tuple(Matcher.model_validate(m) for m in matchers)
            for field_name, matchers in table.items()
        }
    except ValidationError as exc:
        raise SignatureError(f"Invalid signature file {path.name}: {exc}") from exc
    logger.debug("Loaded %d generic column synonyms from %s", len(columns), path)
    return columns


@lru_cache(maxsize=None)
def load_signature(name: str, signatures_dir: Path | None = None) -> MarketplaceSignature:
    """Load one native marketplace signature (``<name>.yaml``)."""
    path = (signatures_dir or _SIGNATURES_DIR) / f"{name}.yaml"
    signature = _validate(MarketplaceSignature, _read_yaml(path), path)
    if signature.name != name:
        raise SignatureError(
            f"{path.name} declares name '{signature.name}', expected '{name}'"
        )
    logger.debug("Loaded signature '%s' from %s", name, path)
    return signature


@lru_cache(maxsize=None)
def load_aggregator_signature(signatures_dir: Path | None = None) -> AggregatorSignature:
    """Load the hub-export signature (``aggregator.yaml``)."""
    path = (signatures_dir or _SIGNATURES_DIR) / "aggregator.yaml"
    signature = _validate(AggregatorSignature, _read_yaml(path), path)
    logger.debug("Loaded aggregator signature from %s", path)
    return signature


def resolve_synonyms(
    signature: MarketplaceSignature,
    signatures_dir: Path | None = None,
) -> dict[str, tuple[Matcher, ...]]:
    """Build the synonym table a native parser maps its columns with.

    When ``inherit_generic_columns`` is set, the generic table is the base
    and the signature's own entries replace it field by field.
    """
    table: dict[str, tuple[Matcher, ...]] = {}
    if signature.inherit_generic_columns:
        table.update(load_generic_columns(signatures_dir))
    table.update({k: tuple(v) for k, v in signature.columns.items()})
    return table
