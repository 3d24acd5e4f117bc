"""Row model: the tabular intermediate representation every stage reads and writes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, fields
from enum import Enum
from fractions import Fraction
from typing import Any, Final


class Source(Enum):
    LYRIC = "lyric"
    PITCH = "pitch"
    HEADER = "header"


class Kind(Enum):
    SYLLABLE = "syllable"
    ATTACK = "attack"
    TIE = "tie"
    DOUBLE_HOLD = "double_hold"
    REST = "rest"
    PITCH = "pitch"
    KEY_SIG = "key_sig"
    BARLINE = "barline"
    BEAT_DURATION_DIRECTIVE = "beat_duration_directive"
    HEADER_FIELD = "header_field"
    UNKNOWN = "unknown"


class Accidental(Enum):
    """Accidentals, valued by their FQS spelling."""

    NONE = ""
    SHARP = "#"
    DOUBLE_SHARP = "##"
    FLAT = "&"
    DOUBLE_FLAT = "&&"
    NATURAL = "%"

    @classmethod
    def from_fqs(cls, symbol: str | None) -> Accidental:
        return cls(symbol or "")

    @property
    def semitones(self) -> int:
        return _SEMITONES[self]


_SEMITONES: Final[dict[Accidental, int]] = {
    Accidental.NONE: 0,
    Accidental.SHARP: 1,
    Accidental.DOUBLE_SHARP: 2,
    Accidental.FLAT: -1,
    Accidental.DOUBLE_FLAT: -2,
    Accidental.NATURAL: 0,
}

ATTACK_KINDS: Final = frozenset({Kind.SYLLABLE, Kind.ATTACK})
HOLD_KINDS: Final = frozenset({Kind.TIE, Kind.DOUBLE_HOLD})
RHYTHM_KINDS: Final = ATTACK_KINDS | HOLD_KINDS | {Kind.REST}

SPECIAL_KINDS: Final[dict[str, Kind]] = {
    "*": Kind.ATTACK,
    "-": Kind.TIE,
    "=": Kind.DOUBLE_HOLD,
    ";": Kind.REST,
}


@dataclass(frozen=True)
class Row:
    """
    One token of the score, annotated progressively by the pipeline stages.

    Positional fields (``measure``, ``beat``, ``subdivision``) are set by the
    flattener. Pitch fields are filled by the octave resolver and attack
    mapper; ``unit_length``, ``meter``, ``directive`` and ``key_name`` by the
    prep stages; ``note_text``/``draft_text`` by the encoder and
    ``final_text`` by the optimizer. ``final_text == ""`` marks a row whose
    contribution was folded into an earlier row.
    """

    source: Source
    block: int
    kind: Kind
    raw_value: str = ""
    measure: int | None = None
    beat: int | None = None
    subdivision: int | None = None
    beat_duration: Fraction | None = None
    pitch_letter: str | None = None
    accidental: Accidental | None = None
    octave_shift: int = 0
    absolute_octave: int | None = None
    pickup_counter: int | None = None
    unit_length: Fraction | None = None
    declared_unit: Fraction | None = None
    meter: str | None = None
    directive: str = ""
    key_name: str | None = None
    note_text: str | None = None
    draft_text: str | None = None
    final_text: str | None = None

    @property
    def is_attack(self) -> bool:
        return self.source is Source.LYRIC and self.kind in ATTACK_KINDS

    @property
    def is_hold(self) -> bool:
        return self.source is Source.LYRIC and self.kind in HOLD_KINDS

    @property
    def is_rhythm(self) -> bool:
        return self.source is Source.LYRIC and self.kind in RHYTHM_KINDS

    @property
    def has_pitch(self) -> bool:
        return self.pitch_letter is not None and self.absolute_octave is not None

    @property
    def text(self) -> str:
        """The row's notation contribution at its latest stage."""
        if self.final_text is not None:
            return self.final_text
        return self.draft_text or ""


COLUMNS: Final[tuple[str, ...]] = tuple(f.name for f in fields(Row))

_INT_COLUMNS: Final = frozenset(
    {"block", "measure", "beat", "subdivision", "octave_shift", "absolute_octave", "pickup_counter"}
)
_FRACTION_COLUMNS: Final = frozenset({"beat_duration", "unit_length", "declared_unit"})
_ENUM_COLUMNS: Final[dict[str, type[Enum]]] = {
    "source": Source,
    "kind": Kind,
    "accidental": Accidental,
}
_NULL: Final = "\\N"


# ----------------------------------------------------------------------
# Grouping helpers
# ----------------------------------------------------------------------


def beat_groups(rows: Sequence[Row]) -> dict[tuple[int, int, int], list[int]]:
    """Indices of rhythm rows keyed by (block, measure, beat), in document order."""
    groups: dict[tuple[int, int, int], list[int]] = {}
    for index, row in enumerate(rows):
        if not row.is_rhythm or row.measure is None or row.beat is None:
            continue
        groups.setdefault((row.block, row.measure, row.beat), []).append(index)
    return groups


def first_rhythm_kinds(rows: Iterable[Row]) -> dict[int, Kind]:
    """Kind of the first rhythm row of each block."""
    first: dict[int, Kind] = {}
    for row in rows:
        if row.is_rhythm and row.block not in first:
            first[row.block] = row.kind
    return first


def block_numbers(rows: Iterable[Row]) -> list[int]:
    seen: dict[int, None] = {}
    for row in rows:
        if row.source is not Source.HEADER:
            seen.setdefault(row.block, None)
    return list(seen)


# ----------------------------------------------------------------------
# Tabular dump
# ----------------------------------------------------------------------


def _encode(value: Any) -> str:
    if value is None:
        return _NULL
    if isinstance(value, Enum):
        return value.name
    text = str(value)
    return text.replace("\\", "\\\\").replace("\t", "\\t").replace("\n", "\\n")


def _decode_text(text: str) -> str:
    out: list[str] = []
    chars = iter(text)
    for char in chars:
        if char != "\\":
            out.append(char)
            continue
        escaped = next(chars, "")
        out.append({"t": "\t", "n": "\n"}.get(escaped, escaped))
    return "".join(out)


def _decode(column: str, text: str) -> Any:
    if text == _NULL:
        return None
    if column in _ENUM_COLUMNS:
        return _ENUM_COLUMNS[column][text]
    if column in _INT_COLUMNS:
        return int(text)
    if column in _FRACTION_COLUMNS:
        return Fraction(text)
    return _decode_text(text)


def rows_to_tsv(rows: Iterable[Row]) -> str:
    """Dump rows as a tab-separated table with a header line."""
    lines = ["\t".join(COLUMNS)]
    for row in rows:
        lines.append("\t".join(_encode(getattr(row, column)) for column in COLUMNS))
    return "\n".join(lines) + "\n"


def rows_from_tsv(text: str) -> list[Row]:
    """Rebuild rows from :func:`rows_to_tsv` output."""
    lines = text.splitlines()
    if not lines:
        return []
    header = lines[0].split("\t")
    unknown = set(header) - set(COLUMNS)
    if unknown:
        raise ValueError(f"Unknown row columns: {', '.join(sorted(unknown))}")
    rows = []
    for line in lines[1:]:
        values = line.split("\t")
        if len(values) != len(header):
            raise ValueError(f"Expected {len(header)} columns, got {len(values)}: {line!r}")
        rows.append(Row(**{column: _decode(column, value) for column, value in zip(header, values)}))
    return rows


# ----------------------------------------------------------------------
# Comparison
# ----------------------------------------------------------------------


def diff_rows(
    expected: Sequence[Row],
    actual: Sequence[Row],
    ignore: Iterable[str] = (),
) -> list[str]:
    """Describe every difference between two row tables, skipping ``ignore`` columns."""
    ignored = set(ignore)
    columns = [column for column in COLUMNS if column not in ignored]
    problems: list[str] = []
    if len(expected) != len(actual):
        problems.append(f"row count {len(expected)} != {len(actual)}")
    for index, (left, right) in enumerate(zip(expected, actual)):
        for column in columns:
            a, b = getattr(left, column), getattr(right, column)
            if a != b:
                problems.append(f"row {index}: {column} {a!r} != {b!r}")
    return problems


def rows_equal(expected: Sequence[Row], actual: Sequence[Row], ignore: Iterable[str] = ()) -> bool:
    return not diff_rows(expected, actual, ignore)
