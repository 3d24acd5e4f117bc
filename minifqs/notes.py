"""Note/tuplet encoder: each beat group becomes one ABC fragment."""

from __future__ import annotations

from dataclasses import dataclass, replace
from fractions import Fraction
from typing import Final

from minifqs.beat_unit import COMPOUND_UNIT, DEFAULT_UNIT
from minifqs.rows import Accidental, Kind, Row, beat_groups
from minifqs.stage import PipelineContext, Stage

ABC_ACCIDENTALS: Final[dict[Accidental, str]] = {
    Accidental.NONE: "",
    Accidental.SHARP: "^",
    Accidental.DOUBLE_SHARP: "^^",
    Accidental.FLAT: "_",
    Accidental.DOUBLE_FLAT: "__",
    Accidental.NATURAL: "=",
}

REST: Final = "z"
TIE: Final = "-"


# ----------------------------------------------------------------------
# Spelling helpers
# ----------------------------------------------------------------------


def is_power_of_two(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0


def subdivision_denominator(count: int, compound: bool = False) -> int:
    """
    Denominator for a beat split into ``count`` subdivisions.

    Powers of two divide evenly; other counts use the largest power of two
    below them (3 → 2, 7 → 4). Compound units halve the result, minimum 1.
    """
    denominator = count if is_power_of_two(count) else 1 << (count.bit_length() - 1)
    if compound:
        denominator = max(1, denominator // 2)
    return denominator


def needs_tuplet(count: int, compound: bool = False) -> bool:
    return count > 1 and count % 2 == 1 and not compound


def tuplet_prefix(count: int, denominator: int) -> str:
    if count == 3:
        return "(3"
    return f"({count}:{denominator}"


def subdivision_length(count: int, beat_duration: Fraction | int, unit: Fraction) -> Fraction:
    """Written length, in units, of one subdivision of a beat group."""
    compound = unit == COMPOUND_UNIT
    denominator = subdivision_denominator(count, compound)
    if compound:
        return Fraction(1, denominator)
    return Fraction(beat_duration) / denominator


def duration_suffix(length: Fraction) -> str:
    if length == 1:
        return ""
    if length.numerator == 1:
        return f"/{length.denominator}"
    if length.denominator == 1:
        return str(length.numerator)
    return f"{length.numerator}/{length.denominator}"


def abc_pitch(letter: str, octave: int) -> str:
    """Spell a letter and absolute octave (4 = middle-C octave) in ABC."""
    if octave == 4:
        return letter.upper()
    if octave == 5:
        return letter.lower()
    if octave > 5:
        return letter.lower() + "'" * (octave - 5)
    return letter.upper() + "," * (4 - octave)


def encode_row(row: Row, length: Fraction, prefix: str = "") -> str:
    """
    Encode one subdivision: tie marker, tuplet prefix, accidental, pitch, length.

    Rests and rows without a pitch become rests of the same length.
    """
    suffix = duration_suffix(length)
    if row.kind is Kind.REST or not row.has_pitch:
        return f"{prefix}{REST}{suffix}"
    pitch = abc_pitch(row.pitch_letter, row.absolute_octave)
    if row.is_hold:
        return f"{TIE}{prefix}{pitch}{suffix}"
    accidental = ABC_ACCIDENTALS[row.accidental or Accidental.NONE]
    return f"{prefix}{accidental}{pitch}{suffix}"


# ----------------------------------------------------------------------
# Stage
# ----------------------------------------------------------------------


@dataclass
class EncodeReport:
    groups: int = 0
    tuplets: int = 0
    rests: int = 0
    ties: int = 0


def encode_notes(rows: list[Row]) -> tuple[list[Row], EncodeReport]:
    report = EncodeReport()
    out = list(rows)
    for indices in beat_groups(rows).values():
        first = rows[indices[0]]
        count = len(indices)
        unit = first.unit_length or DEFAULT_UNIT
        compound = unit == COMPOUND_UNIT
        length = subdivision_length(count, first.beat_duration or 1, unit)
        bracket = needs_tuplet(count, compound)
        prefix = tuplet_prefix(count, subdivision_denominator(count, compound)) if bracket else ""

        tokens = []
        for position, index in enumerate(indices):
            row = rows[index]
            token = encode_row(row, length, prefix if position == 0 else "")
            tokens.append(token)
            out[index] = replace(row, note_text=token, draft_text="")
            if row.kind is Kind.REST or not row.has_pitch:
                report.rests += 1
            elif row.is_hold:
                report.ties += 1

        out[indices[0]] = replace(out[indices[0]], draft_text="".join(tokens))
        report.groups += 1
        report.tuplets += int(bracket)
    return out, report


class NoteStage(Stage):
    name = "notes"
    description = "Encode beat groups as ABC notes and tuplets"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        encoded, report = encode_notes(rows)
        self.record(
            context,
            beat_groups=report.groups,
            tuplets=report.tuplets,
            rests=report.rests,
            ties=report.ties,
        )
        return encoded
