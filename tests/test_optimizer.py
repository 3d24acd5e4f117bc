"""Unit tests for the tie-to-dot optimizer."""

from fractions import Fraction

import pytest

from minifqs.optimizer import collect_groups, crosses_beat_boundary, optimize
from minifqs.pipeline import convert, run
from minifqs.stage import PipelineOptions

SIMPLE = """Simple Example

Hap.py | birth day to | you - ; |
K&1 cc | d c f | e |
counter: 3
"""


def _body(text: str, optimize_ties: bool = True) -> str:
    return run(text, PipelineOptions(optimize=optimize_ties)).abc.splitlines()[-1]


@pytest.mark.parametrize(
    ("start", "duration", "meter", "expected"),
    [
        (Fraction(5, 2), Fraction(3, 2), "4/4", True),
        (Fraction(0), Fraction(3, 4), "4/4", False),
        (Fraction(1, 4), Fraction(3, 4), "2/4", False),
        (Fraction(0), Fraction(3, 2), "3/4", True),
        (Fraction(1), Fraction(2), "4/4", True),
        (Fraction(2), Fraction(2), "4/4", True),
        (Fraction(0), Fraction(3), "6/8", False),
        (Fraction(3, 2), Fraction(3), "6/8", True),
        (Fraction(3), Fraction(3), "6/8", False),
    ],
)
def test_crosses_beat_boundary(start: Fraction, duration: Fraction, meter: str, expected: bool) -> None:
    assert crosses_beat_boundary(start, duration, meter) is expected


def test_three_note_tie_inside_beat_becomes_dotted() -> None:
    assert _body("a--b\nc d\n") == "C3/4D/4"


def test_disabled_optimizer_keeps_ties() -> None:
    assert _body("a--b\nc d\n", optimize_ties=False) == "C/4-C/4-C/4D/4"


def test_run_of_ties_continuing_a_beat_becomes_dotted() -> None:
    assert _body("a ---b\nc d\n") == "C- C3/4D/4"


def test_dotted_run_crossing_a_beat_is_refused() -> None:
    assert _body("2a--b\nc d\n") == "C/2-C/2-C/2D/2"


def test_tuplets_are_not_rewritten() -> None:
    assert _body("a--\nc\n") == "(3C/2-C/2-C/2"


def test_compound_dotted_quarter() -> None:
    abc = convert("[4.] a-- b.c.d\nc d e f\n")
    assert abc.splitlines()[-3:] == ["M:6/8", "L:1/8", "C3 DEF"]


def test_sustained_beats_merge_into_half_note() -> None:
    assert _body(SIMPLE) == "C/2C/2| D C F| E2 z|"


def test_merge_on_downbeat_in_common_time() -> None:
    assert _body("a - b c\nc d e\n") == "C2 D E"


def test_merge_across_mid_measure_is_refused() -> None:
    assert _body("a b - c\nc d e\n") == "C D- D E"


def test_three_beat_merge() -> None:
    assert _body("a - -\nc\n") == "C3"


def test_merge_stays_inside_measure() -> None:
    assert _body("a b a | - c d\nc d e f g\n") == "C D E-| E F G"


def test_merge_needs_same_pitch_holds() -> None:
    assert _body("a ; -\nc\n") == "C z z"


def test_pickup_offsets_group_positions() -> None:
    rows = run(SIMPLE, PipelineOptions(stop_at="notes")).rows
    groups = collect_groups(rows)
    assert [group.start for group in groups[:2]] == [Fraction(2), Fraction(0)]
    assert groups[0].length == Fraction(1, 2)


def test_every_row_gets_final_text() -> None:
    rows = run(SIMPLE, PipelineOptions(stop_at="notes")).rows
    optimized, stats = optimize(rows)
    assert len(optimized) == len(rows)
    assert all(row.final_text is not None for row in optimized)
    assert stats == {"dotted": 0, "merged": 1}
