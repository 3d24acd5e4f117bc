"""Meter calculator: per-measure beat counts, pickup correction and meter changes."""

from __future__ import annotations

from dataclasses import dataclass, replace
from fractions import Fraction
from typing import Final

from minifqs.beat_unit import COMPOUND_UNIT, DEFAULT_UNIT, unit_text
from minifqs.header import set_header
from minifqs.rows import Row
from minifqs.stage import PipelineContext, Stage

#: (beats, unit denominator) -> meter for the signatures written as-is.
COMMON_METERS: Final[dict[tuple[int, int], str]] = {
    (4, 4): "4/4",
    (3, 4): "3/4",
    (2, 4): "2/4",
    (6, 8): "6/8",
    (9, 8): "9/8",
    (12, 8): "12/8",
}

EMPTY_SCORE_METER: Final = "4/4"


@dataclass(frozen=True)
class MeasureInfo:
    """
    Beat accounting for one (block, measure).

    Attributes:
        indices:   Row indices of the measure's rhythm rows.
        unit:      Effective unit length at the measure's first rhythm row.
        raw_beats: Beats before pickup correction.
        beats:     Beats after pickup correction.
        meter:     Derived meter string.
    """

    block: int
    measure: int
    indices: tuple[int, ...]
    unit: Fraction
    raw_beats: int
    beats: int
    meter: str


def meter_string(beats: int, unit_denominator: int) -> str:
    common = COMMON_METERS.get((beats, unit_denominator))
    if common is not None:
        return common
    if unit_denominator == 8:
        return f"{beats}/8"
    return f"{beats}/4"


def pickup_beats(raw_beats: int, counter: int | None) -> int:
    """Beats of a pickup measure whose first beat is counted as ``counter``."""
    if counter is None:
        return raw_beats
    return counter + (raw_beats - 1)


def count_beats(rows: list[Row], indices: list[int], unit: Fraction) -> int:
    if unit == COMPOUND_UNIT:
        return len(indices)
    total = Fraction(0)
    for index in indices:
        row = rows[index]
        if row.subdivision == 1 and row.beat_duration is not None:
            total += row.beat_duration
    return int(total)


def measure_table(rows: list[Row]) -> list[MeasureInfo]:
    """Group rhythm rows by (block, measure) and compute each measure's meter."""
    grouped: dict[tuple[int, int], list[int]] = {}
    for index, row in enumerate(rows):
        if row.is_rhythm and row.measure is not None:
            grouped.setdefault((row.block, row.measure), []).append(index)

    table = []
    for (block, measure), indices in grouped.items():
        first = rows[indices[0]]
        unit = first.unit_length or DEFAULT_UNIT
        raw = count_beats(rows, indices, unit)
        beats = pickup_beats(raw, first.pickup_counter) if measure == 0 else raw
        table.append(
            MeasureInfo(
                block=block,
                measure=measure,
                indices=tuple(indices),
                unit=unit,
                raw_beats=raw,
                beats=beats,
                meter=meter_string(beats, unit.denominator),
            )
        )
    return table


def apply_meters(rows: list[Row]) -> list[Row]:
    """
    Write each measure's meter onto its rhythm rows, the first meter into the
    header and inline ``[L:]``/``[M:]`` directives wherever they change.
    """
    table = measure_table(rows)
    out = list(rows)
    if not table:
        return set_header(out, "M", EMPTY_SCORE_METER)

    previous: MeasureInfo | None = None
    for info in table:
        for index in info.indices:
            out[index] = replace(out[index], meter=info.meter)
        if previous is not None:
            changes = []
            if info.unit != previous.unit:
                changes.append(f"[L:{unit_text(info.unit)}]")
            if info.meter != previous.meter:
                changes.append(f"[M:{info.meter}]")
            if changes:
                first = out[info.indices[0]]
                directive = " ".join(filter(None, [first.directive, *changes]))
                out[info.indices[0]] = replace(first, directive=directive)
        previous = info
    return set_header(out, "M", table[0].meter)


class MeterStage(Stage):
    name = "meter"
    description = "Infer per-measure meters and emit meter changes"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        metered = apply_meters(rows)
        table = measure_table(rows)
        self.record(
            context,
            measures=len(table),
            meters={f"{info.block}:{info.measure}": info.meter for info in table},
        )
        return metered
