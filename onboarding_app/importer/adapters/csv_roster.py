"""CSV adapter for roster onboarding uploads.

Splits the uploaded text into rows, drops blank rows, maps the header row onto
the canonical roster contract, and yields trimmed canonical rows numbered the
way school admins see them in a spreadsheet (row 2 is the first data row).
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Iterator, Mapping, Sequence

from onboarding_app.importer.contracts import get_roster_alias_map, normalize_header

FIRST_DATA_ROW_NUMBER = 2


class CSVAdapterError(Exception):
    """Base exception for CSV adapter failures."""


def _decode(source: str | bytes) -> str:
    # Undecodable bytes become U+FFFD
    text = source.decode("utf-8", errors="replace") if isinstance(source, bytes) else source
    return text.lstrip("\ufeff")


def _row_is_blank(cells: Sequence[str]) -> bool:
    return all(not (cell or "").strip() for cell in cells)


def parse_csv_rows(source: str | bytes) -> list[list[str]]:
    """
    Split CSV text into rows of cell strings.

    Quoted fields may hold commas, doubled quotes and line breaks; ``\\r\\n``
    and ``\\n`` terminators are both accepted and the last line needs none.
    Rows whose cells are all blank are dropped.
    """

    text = _decode(source)
    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        return [list(cells) for cells in reader if not _row_is_blank(cells)]
    except csv.Error as exc:
        raise CSVAdapterError(f"Line {reader.line_num}: {exc}") from exc


@dataclass(frozen=True)
class HeaderResolution:
    """Column index chosen for each canonical field (``None`` when absent)."""

    raw_headers: tuple[str, ...]
    columns: Mapping[str, int | None]

    @property
    def missing(self) -> tuple[str, ...]:
        return tuple(name for name, index in self.columns.items() if index is None)

    def project(self, cells: Sequence[str]) -> dict[str, str]:
        """Map a data row onto canonical names; missing cells become ``""``."""

        row: dict[str, str] = {}
        for name, index in self.columns.items():
            if index is None or index >= len(cells):
                row[name] = ""
            else:
                row[name] = (cells[index] or "").strip()
        return row


def resolve_headers(raw_headers: Sequence[str]) -> HeaderResolution:
    """
    Pick a column for every canonical field.

    Candidates are tried canonical name first, then aliases in order; the first
    candidate that matches a normalized header wins. Unknown columns are
    ignored.
    """

    sanitized = tuple((header or "").strip().lstrip("\ufeff") for header in raw_headers)
    positions: dict[str, int] = {}
    for index, header in enumerate(sanitized):
        positions.setdefault(normalize_header(header), index)

    columns: dict[str, int | None] = {}
    for name, candidates in get_roster_alias_map().items():
        columns[name] = next((positions[token] for token in candidates if token in positions), None)
    return HeaderResolution(raw_headers=sanitized, columns=columns)


@dataclass(frozen=True)
class RosterCSVRow:
    """A data row keyed by canonical field name."""

    row_number: int
    values: dict[str, str]

    def get(self, name: str) -> str:
        return self.values.get(name, "")


@dataclass
class RosterCSVStatistics:
    rows_total: int = 0
    header_columns: int = 0
    missing_fields: tuple[str, ...] = field(default_factory=tuple)


class RosterCSVAdapter:
    """Reader that turns an uploaded roster file into canonical rows."""

    def __init__(self, source: str | bytes) -> None:
        self._rows = parse_csv_rows(source)
        self._header: HeaderResolution | None = None
        self.statistics = RosterCSVStatistics()

    @property
    def header(self) -> HeaderResolution | None:
        return self._header

    def _prepare_header(self) -> HeaderResolution:
        if self._header is None:
            raw_headers = self._rows[0] if self._rows else []
            self._header = resolve_headers(raw_headers)
            self.statistics.header_columns = len(raw_headers)
            self.statistics.missing_fields = self._header.missing
        return self._header

    def iter_rows(self) -> Iterator[RosterCSVRow]:
        header = self._prepare_header()
        for offset, cells in enumerate(self._rows[1:]):
            self.statistics.rows_total += 1
            yield RosterCSVRow(row_number=FIRST_DATA_ROW_NUMBER + offset, values=header.project(cells))

    def rows(self) -> list[RosterCSVRow]:
        return list(self.iter_rows())


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
