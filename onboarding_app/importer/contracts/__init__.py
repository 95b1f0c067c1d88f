"""Canonical ingest contract helpers for importer adapters."""

from __future__ import annotations

from .roster import (
    ROSTER_CANONICAL_FIELDS,
    ROSTER_REQUIRED_FIELDS,
    FieldSpec,
    get_roster_alias_map,
    get_roster_canonical_names,
    get_roster_field_specs,
    normalize_header,
)

__all__ = [
    "FieldSpec",
    "ROSTER_CANONICAL_FIELDS",
    "ROSTER_REQUIRED_FIELDS",
    "get_roster_alias_map",
    "get_roster_canonical_names",
    "get_roster_field_specs",
    "normalize_header",
]
