"""Beat-unit resolver: inline ``[4]``/``[4.]`` directives become ABC unit lengths."""

from __future__ import annotations

import re
from dataclasses import replace
from fractions import Fraction
from typing import Final

from minifqs.header import set_header
from minifqs.rows import Kind, Row, Source
from minifqs.stage import PipelineContext, Stage

DEFAULT_UNIT: Final = Fraction(1, 4)
COMPOUND_UNIT: Final = Fraction(1, 8)

#: (beat duration, dotted) -> ABC unit note length
UNIT_TABLE: Final[dict[tuple[int, bool], Fraction]] = {
    (1, False): Fraction(1, 1),
    (2, False): Fraction(1, 2),
    (4, False): Fraction(1, 4),
    (8, False): Fraction(1, 8),
    (1, True): Fraction(1, 2),
    (2, True): Fraction(1, 4),
    (4, True): Fraction(1, 8),
    (8, True): Fraction(1, 16),
}

_DIRECTIVE_RE: Final = re.compile(r"^\[(\d+)(\.)?\]$")


def unit_text(unit: Fraction) -> str:
    """Spell a unit length the way ABC's ``L:`` field expects (always ``n/d``)."""
    return f"{unit.numerator}/{unit.denominator}"


def parse_directive(text: str) -> tuple[Fraction, bool]:
    """
    Map a directive such as ``[4.]`` to its unit length.

    Returns:
        The unit length and whether the directive was recognised. Unknown
        directives give the default 1/4.
    """
    match = _DIRECTIVE_RE.match(text.strip())
    if not match:
        return DEFAULT_UNIT, False
    key = (int(match.group(1)), match.group(2) == ".")
    if key not in UNIT_TABLE:
        return DEFAULT_UNIT, False
    return UNIT_TABLE[key], True


def _first_rhythm_from(rows: list[Row], start: int, block: int) -> int | None:
    """First lyric rhythm row of ``block``'s measure that begins at ``start``."""
    for index in range(start, len(rows)):
        row = rows[index]
        if row.block != block:
            return None
        if row.source is not Source.LYRIC:
            continue
        if row.kind is Kind.BARLINE:
            return None
        if row.is_rhythm:
            return index
    return None


def resolve_beat_units(rows: list[Row]) -> tuple[list[Row], list[str]]:
    """
    Attach declared units to the first rhythm row of each directive's measure
    and propagate the effective unit to every rhythm row.

    Returns:
        The annotated rows and any warnings.
    """
    warnings: list[str] = []
    declarations: dict[int, Fraction] = {}
    last_declared: Fraction | None = None
    measure_start = 0
    current_block: int | None = None

    for index, row in enumerate(rows):
        if row.source is not Source.LYRIC:
            continue
        if row.block != current_block:
            current_block = row.block
            measure_start = index
        if row.kind is Kind.BARLINE:
            measure_start = index + 1
        elif row.kind is Kind.BEAT_DURATION_DIRECTIVE:
            unit, known = parse_directive(row.raw_value)
            if not known:
                warnings.append(f"block {row.block}: unknown beat duration {row.raw_value!r}, using 1/4")
            last_declared = unit
            target = _first_rhythm_from(rows, measure_start, row.block)
            if target is None:
                warnings.append(f"block {row.block}: beat duration {row.raw_value!r} has no notes to apply to")
                continue
            declarations[target] = unit

    effective = DEFAULT_UNIT
    header_unit: Fraction | None = None
    out: list[Row] = []
    for index, row in enumerate(rows):
        if index in declarations:
            effective = declarations[index]
            row = replace(row, declared_unit=effective)
        if row.is_rhythm:
            row = replace(row, unit_length=effective)
            if header_unit is None:
                header_unit = effective
        out.append(row)

    if header_unit is None:
        header_unit = last_declared or DEFAULT_UNIT
    return set_header(out, "L", unit_text(header_unit)), warnings


class BeatUnitStage(Stage):
    name = "beat"
    description = "Resolve unit note lengths from beat-duration directives"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        resolved, warnings = resolve_beat_units(rows)
        for message in warnings:
            context.warn(message)
        self.record(
            context,
            declarations=sum(1 for row in resolved if row.declared_unit is not None),
            units=sorted({unit_text(row.unit_length) for row in resolved if row.unit_length is not None}),
        )
        return resolved
