"""Unit tests for the FQS reader."""

import pytest

from minifqs.errors import FqsSyntaxError
from minifqs.reader import parse_fqs, parse_lyric_line, parse_pitch_line, parse_segments
from minifqs.score_models import (
    Barline,
    BeatDuration,
    BeatTuple,
    KeySignature,
    Pitch,
    Special,
    Syllable,
    node_to_dict,
)

SIMPLE = """Simple Example

Hap.py | birth day to | you - ; |
K&1 cc | d c f | e |
counter: 3
"""


def test_parse_title_and_block() -> None:
    score = parse_fqs(SIMPLE)
    assert score.title == "Simple Example"
    assert len(score.blocks) == 1
    assert score.blocks[0].counter == 3


def test_parse_without_title() -> None:
    score = parse_fqs("a b\nc d\n")
    assert score.title == ""
    assert len(score.blocks) == 1
    assert score.blocks[0].counter is None


def test_parse_multiple_blocks() -> None:
    score = parse_fqs("Two\n\na\nc\n\n\nb\nd\n")
    assert score.title == "Two"
    assert len(score.blocks) == 2


def test_empty_text_is_empty_score() -> None:
    score = parse_fqs("")
    assert score.blocks == ()
    assert score.title == ""


def test_syllables_split_on_dots() -> None:
    items = parse_lyric_line("Hap.py")
    assert items == (BeatTuple(content=(Syllable("Hap"), Syllable("py")), duration=1),)


def test_special_markers_are_single_segments() -> None:
    assert parse_segments("*-=;") == (Special("*"), Special("-"), Special("="), Special(";"))
    assert parse_segments("a--b") == (Syllable("a"), Special("-"), Special("-"), Syllable("b"))


def test_leading_integer_sets_beat_duration() -> None:
    (item,) = parse_lyric_line("2long")
    assert isinstance(item, BeatTuple)
    assert item.duration == 2
    assert item.content == (Syllable("long"),)


def test_barlines_and_directives() -> None:
    items = parse_lyric_line("[4.] a|b [8]")
    assert items[0] == BeatDuration(4, dotted=True)
    assert items[2] == Barline()
    assert items[-1] == BeatDuration(8, dotted=False)
    assert BeatDuration(4, dotted=True).text == "[4.]"


def test_malformed_directive_is_an_error() -> None:
    with pytest.raises(FqsSyntaxError):
        parse_lyric_line("[x]", line_no=3)


def test_pitch_line_with_key_signature() -> None:
    line = parse_pitch_line("K&1 cc | d")
    assert line.key_signature == KeySignature("&", 1)
    assert line.elements == (Pitch("c"), Pitch("c"), Barline(), Pitch("d"))


def test_pitch_with_shifts_and_accidentals() -> None:
    line = parse_pitch_line("^#f/&b %c ^^g")
    assert line.key_signature is None
    assert line.elements == (
        Pitch("f", "#", "^"),
        Pitch("b", "&", "/"),
        Pitch("c", "%"),
        Pitch("g", None, "^^"),
    )
    assert Pitch("f", "#", "^").text == "^#f"


def test_key_signature_after_barline_is_an_element() -> None:
    line = parse_pitch_line("K0 c | K#2 d")
    assert line.key_signature == KeySignature(None, 0)
    assert line.elements[2] == KeySignature("#", 2)
    assert KeySignature("#", 2).text == "K#2"


def test_unknown_pitch_raises_with_line_number() -> None:
    with pytest.raises(FqsSyntaxError) as excinfo:
        parse_fqs("a b\nc x\n")
    assert excinfo.value.line_no == 2
    assert "line 2" in str(excinfo.value)


def test_block_without_pitch_line_is_an_error() -> None:
    with pytest.raises(FqsSyntaxError):
        parse_fqs("Title\n\na b c\n")


def test_bad_counter_line_is_an_error() -> None:
    with pytest.raises(FqsSyntaxError):
        parse_fqs("a\nc\ncount 3\n")


def test_syntax_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_pitch_line("K9 c")


def test_node_to_dict_tags_types() -> None:
    data = node_to_dict(parse_fqs(SIMPLE))
    assert data["type"] == "Score"
    assert data["title"] == "Simple Example"
    block = data["blocks"][0]
    assert block["counter"] == 3
    assert block["pitches"]["key_signature"] == {"type": "KeySignature", "accidental": "&", "count": 1}
