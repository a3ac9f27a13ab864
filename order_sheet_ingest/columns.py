"""
Column synonym resolver for order-sheet-ingest.

Maps a canonical field name (``order_date``, ``product_cost``, ...) to a
column index by testing the field's synonym predicates against the header
row.

Resolution rules:
- Headers and synonym terms are normalized the same way (lower-cased,
  trimmed, line breaks and repeated whitespace collapsed, accents folded),
  so ``"Data de Liquidação"`` and ``"liquidacao"`` compare equal.
- First match wins: the header is scanned in column order and the first
  cell satisfying ANY of the field's matchers is taken. There is no
  scoring. Ambiguous headers are handled inside the matcher itself with an
  ``excludes`` guard or a regex negative lookahead.

Synonym tables are data, not code: they live in ``signatures/*.yaml`` and
are loaded by ``signature_registry``.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_header(value: Any) -> str:
    """Normalize a header cell (or synonym term) for comparison."""
    if value is None:
        return ""
    text = _WHITESPACE_PATTERN.sub(" ", str(value).lower()).strip()
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize_header_row(row: Sequence[Any]) -> list[str]:
    return [normalize_header(cell) for cell in row]


def header_text(header: Sequence[str]) -> str:
    """Join a normalized header row into one searchable string."""
    return " ".join(h for h in header if h)


def find_phrase(text: str, phrases: Sequence[str]) -> str | None:
    """Return the first of *phrases* contained in *text*, if any."""
    for phrase in phrases:
        if phrase and phrase in text:
            return phrase
    return None


class Matcher(BaseModel):
    """One synonym predicate for a header cell.

    In YAML a plain string is shorthand for ``{contains: <string>}``. The
    mapping form supports exactly one of:

    - ``equals``: the whole header equals the term.
    - ``contains``: the header contains the term.
    - ``all``: the header contains every listed term.
    - ``startswith``: the header starts with the term.
    - ``pattern``: a regex searched in the normalized header (write it
      without accents; negative lookaheads are allowed).

    plus an optional ``excludes`` list: the match is rejected when the
    header contains any of those terms.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    equals: str | None = None
    contains: str | None = None
    all_of: tuple[str, ...] | None = Field(None, alias="all")
    startswith: str | None = None
    pattern: str | None = None
    excludes: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"contains": data}
        return data

    @field_validator("equals", "contains", "startswith")
    @classmethod
    def _normalize_term(cls, value: str | None) -> str | None:
        return normalize_header(value) if value is not None else None

    @field_validator("all_of", "excludes")
    @classmethod
    def _normalize_terms(cls, value: tuple[str, ...] | None) -> tuple[str, ...] | None:
        if value is None:
            return None
        return tuple(normalize_header(v) for v in value)

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"Invalid pattern {value!r}: {exc}") from exc
        return value

    @model_validator(mode="after")
    def _check_one_predicate(self) -> Matcher:
        predicates = [self.equals, self.contains, self.all_of, self.startswith, self.pattern]
        given = sum(p is not None for p in predicates)
        if given != 1:
            raise ValueError(
                "A matcher needs exactly one of equals/contains/all/startswith/pattern, "
                f"got {given}"
            )
        return self

    def matches(self, header: str) -> bool:
        """Test an already-normalized header cell."""
        if not header:
            return False
        if any(term in header for term in self.excludes):
            return False
        if self.equals is not None:
            return header == self.equals
        if self.contains is not None:
            return self.contains in header
        if self.all_of is not None:
            return all(term in header for term in self.all_of)
        if self.startswith is not None:
            return header.startswith(self.startswith)
        return re.search(self.pattern, header) is not None


SynonymTable = Mapping[str, Sequence[Matcher]]


def matches_any(header: str, matchers: Sequence[Matcher]) -> bool:
    return any(m.matches(header) for m in matchers)


def find_column_index(
    header: Sequence[str],
    field_name: str,
    synonyms: SynonymTable,
) -> int:
    """Find the column for *field_name* in a normalized header row.

    Args:
        header: The normalized header row (see ``normalize_header_row``).
        field_name: Canonical field name, a key of *synonyms*.
        synonyms: Field name -> ordered matchers.

    Returns:
        The index of the first header cell satisfying any matcher, or ``-1``
        when no cell matches (or the field has no synonyms).
    """
    matchers = synonyms.get(field_name, ())
    for index, cell in enumerate(header):
        if matches_any(cell, matchers):
            return index
    return -1


@dataclass(frozen=True)
class ColumnMap:
    """Read-only mapping of canonical field name -> column index.

    Built once per sheet from the header row. Fields that were not found
    are simply absent; parsers treat them as unknown, never as an error.

    Attributes:
        indices: Field name -> column index (read-only view).
        labels: The normalized header row the map was built from, kept for
            diagnostics and strict-mode warnings.
    """

    indices: Mapping[str, int] = field(default_factory=dict)
    labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "indices", MappingProxyType(dict(self.indices)))
        object.__setattr__(self, "labels", tuple(self.labels))

    def __contains__(self, field_name: object) -> bool:
        return field_name in self.indices

    def get(self, field_name: str) -> int | None:
        return self.indices.get(field_name)

    def label(self, field_name: str) -> str:
        index = self.indices.get(field_name)
        if index is None or index >= len(self.labels):
            return ""
        return self.labels[index]

    def describe(self) -> str:
        """One-line summary for logs: ``field=index('header'), ...``."""
        return ", ".join(
            f"{name}={idx}({self.labels[idx]!r})" if idx < len(self.labels) else f"{name}={idx}"
            for name, idx in self.indices.items()
        )


def build_column_map(header: Sequence[str], synonyms: SynonymTable) -> ColumnMap:
    """Resolve every field of *synonyms* against a normalized header row."""
    indices: dict[str, int] = {}
    for field_name in synonyms:
        index = find_column_index(header, field_name, synonyms)
        if index != -1:
            indices[field_name] = index
    return ColumnMap(indices=indices, labels=tuple(header))
