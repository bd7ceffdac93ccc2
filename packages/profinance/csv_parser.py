"""CSV text → list of header-keyed rows.

Two grammars are available:

- ``"rfc4180"`` (default): the stdlib :mod:`csv` reader, so quoted cells may
  contain commas, doubled quotes and newlines.
- ``"naive"``: split lines on ``\\n`` and cells on ``,``. Kept for
  byte-compatibility with the dashboard's historical parser; it cannot handle
  a comma inside a quoted cell (the cell is split in two).

Both grammars apply the same cleanup rules:

- header names and values are trimmed and stripped of ``"`` characters;
- a row whose first three fields are all empty is discarded (trailing blank
  lines, spacer rows);
- missing trailing fields become ``""`` and extra fields are dropped;
- duplicate header names collapse, last column wins;
- input with no data rows yields ``[]``.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Sequence
from io import StringIO
from typing import Literal

type Grammar = Literal["rfc4180", "naive"]

# Rows whose leading cells are all blank are treated as padding.
_BLANK_PROBE_WIDTH = 3


def _clean_cell(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip().replace('"', "")


def _split_naive(text: str) -> list[list[str]]:
    lines = text.strip().split("\n")
    return [line.split(",") for line in lines]


def _split_rfc4180(text: str) -> list[list[str]]:
    with StringIO(text.strip()) as f:
        return [row for row in csv.reader(f)]


def _rows_to_records(rows: Sequence[Sequence[str]]) -> list[dict[str, str]]:
    if len(rows) < 2:
        return []
    headers = [_clean_cell(h) for h in rows[0]]
    records: list[dict[str, str]] = []
    for raw in rows[1:]:
        values = [_clean_cell(v) for v in raw]
        if not any(v != "" for v in values[:_BLANK_PROBE_WIDTH]):
            continue
        record: dict[str, str] = {}
        for i, header in enumerate(headers):
            record[header] = values[i] if i < len(values) else ""
        records.append(record)
    return records


def parse_csv(text: str | None, *, grammar: Grammar = "rfc4180") -> list[dict[str, str]]:
    """Parse CSV ``text`` into header-keyed dicts.

    The first line is the header row. See the module docstring for the
    cleanup rules; ``grammar`` selects how lines and cells are split.
    """

    if not text or not text.strip():
        return []
    # Normalize Windows/Mac line endings so both grammars see "\n".
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if grammar == "naive":
        rows = _split_naive(text)
    elif grammar == "rfc4180":
        rows = _split_rfc4180(text)
    else:
        raise ValueError(f"unknown CSV grammar: {grammar!r}")
    return _rows_to_records(rows)


def header_of(rows: Iterable[dict[str, str]]) -> list[str]:
    """Return the field names of the first row (empty list when none)."""

    for row in rows:
        return list(row.keys())
    return []


__all__ = ["Grammar", "header_of", "parse_csv"]
