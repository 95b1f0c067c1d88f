"""Importer adapter implementations."""

from __future__ import annotations

from .csv_roster import (
    FIRST_DATA_ROW_NUMBER,
    CSVAdapterError,
    HeaderResolution,
    RosterCSVAdapter,
    RosterCSVRow,
    RosterCSVStatistics,
    parse_csv_rows,
    resolve_headers,
)

__all__ = [
    "CSVAdapterError",
    "FIRST_DATA_ROW_NUMBER",
    "HeaderResolution",
    "RosterCSVAdapter",
    "RosterCSVRow",
    "RosterCSVStatistics",
    "parse_csv_rows",
    "resolve_headers",
]
