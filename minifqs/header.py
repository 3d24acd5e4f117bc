"""Header seeder: the fixed ABC header rows that precede the music."""

from __future__ import annotations

from dataclasses import replace
from typing import Final

from minifqs.rows import Kind, Row, Source
from minifqs.stage import PipelineContext, Stage

#: Header fields in output order, with their placeholder values.
HEADER_DEFAULTS: Final[tuple[tuple[str, str], ...]] = (
    ("X", "1"),
    ("T", ""),
    ("K", "C major"),
    ("M", ""),
    ("L", "1/4"),
)


def header_rows(title: str = "") -> list[Row]:
    rows = []
    for name, value in HEADER_DEFAULTS:
        if name == "T":
            value = title
        rows.append(Row(Source.HEADER, 0, Kind.HEADER_FIELD, name, draft_text=value))
    return rows


def seed_header(rows: list[Row], title: str = "") -> list[Row]:
    return header_rows(title) + list(rows)


def set_header(rows: list[Row], name: str, value: str) -> list[Row]:
    """Return ``rows`` with header field ``name`` set to ``value``."""
    return [
        replace(row, draft_text=value)
        if row.source is Source.HEADER and row.raw_value == name
        else row
        for row in rows
    ]


def header_value(rows: list[Row], name: str) -> str | None:
    for row in rows:
        if row.source is Source.HEADER and row.raw_value == name:
            return row.text
    return None


class HeaderStage(Stage):
    name = "prep"
    description = "Prepend the X/T/K/M/L header rows"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        seeded = seed_header(rows, context.title)
        self.record(context, header_rows=len(HEADER_DEFAULTS), title=context.title)
        return seeded
