"""Octave resolver: absolute octaves for relative pitches by the nearest-pitch rule."""

from __future__ import annotations

from dataclasses import replace
from typing import Final

from minifqs.rows import HOLD_KINDS, Row, Source, first_rhythm_kinds
from minifqs.stage import PipelineContext, Stage

PITCH_INDEX: Final[dict[str, int]] = {"c": 0, "d": 1, "e": 2, "f": 3, "g": 4, "a": 5, "b": 6}

MIDDLE_C: Final[tuple[str, int]] = ("c", 4)


def nearest_octave(prev_letter: str, prev_octave: int, letter: str, shift: int = 0) -> int:
    """
    Pick the octave of ``letter`` closest to the previous pitch, then apply explicit shifts.

    Args:
        prev_letter: Letter of the previous pitch.
        prev_octave: Absolute octave of the previous pitch.
        letter:      Letter of the new pitch.
        shift:       Net explicit octave markers (``^`` = +1, ``/`` = -1).

    Returns:
        The absolute octave of the new pitch.
    """
    diff = PITCH_INDEX[letter] - PITCH_INDEX[prev_letter]
    octave = prev_octave
    if diff > 3:
        octave -= 1
    elif diff < -3:
        octave += 1
    return octave + shift


def resolve_octaves(rows: list[Row]) -> list[Row]:
    first_kinds = first_rhythm_kinds(rows)
    letter, octave = MIDDLE_C
    current_block: int | None = None
    out: list[Row] = []
    for row in rows:
        if row.source is not Source.HEADER and row.block != current_block:
            current_block = row.block
            if first_kinds.get(row.block) not in HOLD_KINDS:
                letter, octave = MIDDLE_C
        if row.source is Source.PITCH and row.pitch_letter is not None:
            octave = nearest_octave(letter, octave, row.pitch_letter, row.octave_shift)
            letter = row.pitch_letter
            row = replace(row, absolute_octave=octave)
        out.append(row)
    return out


class OctaveStage(Stage):
    name = "octaves"
    description = "Resolve absolute octaves for pitch rows"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        resolved = resolve_octaves(rows)
        octaves = [row.absolute_octave for row in resolved if row.absolute_octave is not None]
        self.record(
            context,
            pitches=len(octaves),
            lowest=min(octaves, default=None),
            highest=max(octaves, default=None),
        )
        return resolved
