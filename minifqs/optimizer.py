"""Tie-to-dot optimizer: folds tied runs into dotted or longer notes."""

from __future__ import annotations

from dataclasses import dataclass, replace
from fractions import Fraction
from typing import Final

from minifqs.beat_unit import COMPOUND_UNIT, DEFAULT_UNIT
from minifqs.notes import encode_row, needs_tuplet, subdivision_length
from minifqs.rows import Row, beat_groups
from minifqs.stage import PipelineContext, Stage

#: Total lengths (in units) of a three-note tied run that have a dotted spelling.
DOTTED_TOTALS: Final = frozenset({Fraction(3, 4), Fraction(3, 2), Fraction(3)})

#: Lengths (in units) a run of whole-beat notes may merge into.
MERGED_TOTALS: Final = frozenset({Fraction(2), Fraction(3), Fraction(4)})

DOTTED_RUN: Final = 3

GroupKey = tuple[int, int, int]


@dataclass(frozen=True)
class BeatGroup:
    key: GroupKey
    indices: tuple[int, ...]
    start: Fraction
    length: Fraction
    unit: Fraction
    meter: str
    bracketed: bool

    @property
    def compound(self) -> bool:
        return self.unit == COMPOUND_UNIT


# ----------------------------------------------------------------------
# Beat geometry
# ----------------------------------------------------------------------


def crosses_beat_boundary(start: Fraction, duration: Fraction, meter: str) -> bool:
    """
    Whether a note from ``start`` lasting ``duration`` spans a beat line.

    Both values are in meter-denominator units (quarters for ``x/4``,
    eighths for ``x/8``) measured from the start of the measure. Simple
    meters have a line at every beat, and 4/4 also at mid-measure;
    compound meters every three eighths.
    """
    _, _, denominator = meter.partition("/")
    step = Fraction(3) if denominator == "8" else Fraction(1)
    end = start + duration
    first_line = (start // step + 1) * step
    if first_line < end:
        return True
    return meter == "4/4" and start < 2 < end


def _to_meter_units(units: Fraction, unit: Fraction, meter: str) -> Fraction:
    _, _, denominator = meter.partition("/")
    return units * unit * int(denominator or 4)


def _group_span(count: int, beat_duration: Fraction, unit: Fraction) -> Fraction:
    if unit == COMPOUND_UNIT:
        return count * subdivision_length(count, beat_duration, unit)
    return Fraction(beat_duration)


def collect_groups(rows: list[Row]) -> list[BeatGroup]:
    """Beat groups in document order with their start offset (in units) inside the measure."""
    groups = []
    offsets: dict[tuple[int, int], Fraction] = {}
    for key, indices in beat_groups(rows).items():
        first = rows[indices[0]]
        count = len(indices)
        unit = first.unit_length or DEFAULT_UNIT
        beat_duration = first.beat_duration or Fraction(1)
        measure_key = (first.block, first.measure)
        if measure_key not in offsets:
            pickup = first.pickup_counter if first.measure == 0 and first.pickup_counter else 1
            offsets[measure_key] = Fraction(pickup - 1)
        start = offsets[measure_key]
        offsets[measure_key] = start + _group_span(count, beat_duration, unit)
        groups.append(
            BeatGroup(
                key=key,
                indices=tuple(indices),
                start=start,
                length=subdivision_length(count, beat_duration, unit),
                unit=unit,
                meter=first.meter or "4/4",
                bracketed=needs_tuplet(count, unit == COMPOUND_UNIT),
            )
        )
    return groups


def _same_pitch(a: Row, b: Row) -> bool:
    return a.has_pitch and (a.pitch_letter, a.absolute_octave) == (b.pitch_letter, b.absolute_octave)


def _tied_run(rows: list[Row], indices: tuple[int, ...], position: int) -> int:
    """Number of rows in the tied run starting at ``position`` (1 when it is not a run)."""
    head = rows[indices[position]]
    if not (head.is_attack or head.is_hold) or not head.has_pitch:
        return 1
    size = 1
    while position + size < len(indices):
        follower = rows[indices[position + size]]
        if not follower.is_hold or not _same_pitch(head, follower):
            break
        size += 1
    return size


# ----------------------------------------------------------------------
# Passes
# ----------------------------------------------------------------------


def dot_group(rows: list[Row], group: BeatGroup) -> tuple[str, int]:
    """
    Rewrite three-note tied runs inside one beat group as dotted notes.

    Returns:
        The group's text and the number of rewrites.
    """
    pieces: list[str] = []
    rewrites = 0
    position = 0
    while position < len(group.indices):
        size = _tied_run(rows, group.indices, position)
        total = group.length * size
        start = group.start + group.length * position
        if (
            size == DOTTED_RUN
            and not group.bracketed
            and total in DOTTED_TOTALS
            and not crosses_beat_boundary(
                _to_meter_units(start, group.unit, group.meter),
                _to_meter_units(total, group.unit, group.meter),
                group.meter,
            )
        ):
            pieces.append(encode_row(rows[group.indices[position]], total))
            rewrites += 1
        else:
            pieces.extend(rows[index].note_text or "" for index in group.indices[position : position + size])
        position += size
    return "".join(pieces), rewrites


def _merge_allowed(head: BeatGroup, total: Fraction) -> bool:
    if total not in MERGED_TOTALS:
        return False
    if head.meter == "4/4" and head.start > 0:
        start = _to_meter_units(head.start, head.unit, head.meter)
        end = start + _to_meter_units(total, head.unit, head.meter)
        return not start < 2 < end
    return True


def merge_sustained_beats(rows: list[Row], groups: list[BeatGroup]) -> list[tuple[BeatGroup, int, Fraction]]:
    """
    Find whole-beat notes followed by whole-beat holds of the same pitch in
    the same measure.

    Returns:
        ``(head group, groups merged, total length)`` for every merge.
    """
    merges = []
    position = 0
    while position < len(groups):
        head = groups[position]
        head_row = rows[head.indices[0]]
        if len(head.indices) != 1 or head.compound or not head_row.is_attack or not head_row.has_pitch:
            position += 1
            continue

        chain = [head]
        for follower in groups[position + 1 :]:
            row = rows[follower.indices[0]]
            if (
                len(follower.indices) != 1
                or follower.key[:2] != head.key[:2]
                or follower.compound
                or not row.is_hold
                or not _same_pitch(head_row, row)
            ):
                break
            chain.append(follower)

        merged = 1
        for size in range(len(chain), 1, -1):
            total = sum((group.length for group in chain[:size]), Fraction(0))
            if _merge_allowed(head, total):
                merges.append((head, size, total))
                merged = size
                break
        position += merged
    return merges


def optimize(rows: list[Row], enabled: bool = True) -> tuple[list[Row], dict[str, int]]:
    """
    Produce ``final_text`` for every row.

    Without ``enabled`` the draft text is copied unchanged.
    """
    out = [replace(row, final_text=row.draft_text or "") for row in rows]
    stats = {"dotted": 0, "merged": 0}
    if not enabled:
        return out, stats

    groups = collect_groups(rows)
    for group in groups:
        text, rewrites = dot_group(rows, group)
        if rewrites:
            out[group.indices[0]] = replace(out[group.indices[0]], final_text=text)
            stats["dotted"] += rewrites

    position_of = {group.key: position for position, group in enumerate(groups)}
    for head, size, total in merge_sustained_beats(rows, groups):
        first = head.indices[0]
        out[first] = replace(out[first], final_text=encode_row(rows[first], total))
        start = position_of[head.key]
        for follower in groups[start + 1 : start + size]:
            out[follower.indices[0]] = replace(out[follower.indices[0]], final_text="")
        stats["merged"] += 1
    return out, stats


class OptimizeStage(Stage):
    name = "optimize"
    description = "Fold tied runs into dotted and longer notes"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        optimized, stats = optimize(rows, context.options.optimize)
        self.record(context, enabled=context.options.optimize, **stats)
        return optimized
