"""Unit tests for the attack mapper."""

from minifqs.attacks import map_attacks
from minifqs.flattener import flatten
from minifqs.octaves import resolve_octaves
from minifqs.reader import parse_fqs
from minifqs.rows import Accidental, Row, Source

SIMPLE = """Simple Example

Hap.py | birth day to | you - ; |
K&1 cc | d c f | e |
counter: 3
"""


def _mapped(text: str) -> tuple[list[Row], list[str]]:
    rows, report = map_attacks(resolve_octaves(flatten(parse_fqs(text))))
    return rows, report.warnings


def _lyric_pitches(rows: list[Row]) -> list[tuple[str, str | None, int | None]]:
    return [
        (row.raw_value, row.pitch_letter, row.absolute_octave)
        for row in rows
        if row.source is Source.LYRIC and row.is_rhythm
    ]


def test_attacks_consume_pitches_in_order() -> None:
    rows, warnings = _mapped(SIMPLE)
    assert _lyric_pitches(rows) == [
        ("Hap", "c", 4),
        ("py", "c", 4),
        ("birth", "d", 4),
        ("day", "c", 4),
        ("to", "f", 4),
        ("you", "e", 4),
        ("-", "e", 4),
        (";", None, None),
    ]
    assert warnings == []


def test_accidental_is_copied() -> None:
    rows, _ = _mapped("a b\n#f &&b\n")
    attacks = [row for row in rows if row.is_attack]
    assert [row.accidental for row in attacks] == [Accidental.SHARP, Accidental.DOUBLE_FLAT]


def test_attack_without_pitch_degrades_with_warning() -> None:
    rows, warnings = _mapped("a b c -\nc d\n")
    assert _lyric_pitches(rows)[2:] == [("c", None, None), ("-", None, None)]
    assert len(warnings) == 1
    assert "no pitch left" in warnings[0]


def test_unused_pitches_are_reported() -> None:
    _, warnings = _mapped("a\nc d e\n")
    assert warnings == ["block 1: 2 pitch(es) not used by any attack"]


def test_rest_breaks_sustain() -> None:
    rows, _ = _mapped("a ; -\nc\n")
    assert _lyric_pitches(rows) == [("a", "c", 4), (";", None, None), ("-", None, None)]


def test_tie_carries_pitch_into_next_block() -> None:
    rows, warnings = _mapped("a\ng\n\n- b\nd\n")
    assert _lyric_pitches(rows) == [("a", "g", 3), ("-", "g", 3), ("b", "d", 3)]
    assert warnings == []


def test_no_carry_when_block_starts_with_attack() -> None:
    rows, _ = _mapped("a\ng\n\nb -\nd\n")
    assert _lyric_pitches(rows)[1:] == [("b", "d", 4), ("-", "d", 4)]


def test_report_counts() -> None:
    _, report = map_attacks(resolve_octaves(flatten(parse_fqs(SIMPLE))))
    assert report.attacks == 6
    assert report.ties == 1
    assert report.mapped == 7
    assert report.unmapped == 0


def test_row_count_is_preserved() -> None:
    flat = resolve_octaves(flatten(parse_fqs(SIMPLE)))
    rows, _ = map_attacks(flat)
    assert len(rows) == len(flat)
