"""Unit tests for the meter calculator."""

import pytest

from minifqs.header import header_rows, header_value
from minifqs.meter import apply_meters, measure_table, meter_string, pickup_beats
from minifqs.pipeline import run
from minifqs.rows import Row
from minifqs.stage import PipelineOptions

SIMPLE = """Simple Example

Hap.py | birth day to | you - ; |
K&1 cc | d c f | e |
counter: 3
"""


def _rows(text: str) -> list[Row]:
    return run(text, PipelineOptions(stop_at="meter")).rows


def _directives(rows: list[Row]) -> list[tuple[str, str]]:
    return [(row.raw_value, row.directive) for row in rows if row.directive]


@pytest.mark.parametrize(
    ("beats", "denominator", "expected"),
    [
        (4, 4, "4/4"),
        (3, 4, "3/4"),
        (2, 4, "2/4"),
        (6, 8, "6/8"),
        (9, 8, "9/8"),
        (12, 8, "12/8"),
        (5, 4, "5/4"),
        (5, 8, "5/8"),
        (3, 2, "3/4"),
    ],
)
def test_meter_string(beats: int, denominator: int, expected: str) -> None:
    assert meter_string(beats, denominator) == expected


def test_pickup_formula() -> None:
    assert pickup_beats(2, 3) == 4
    assert pickup_beats(1, 3) == 3
    assert pickup_beats(2, None) == 2


def test_pickup_measure_uses_counter() -> None:
    rows = _rows(SIMPLE)
    table = measure_table(rows)
    assert [(info.measure, info.raw_beats, info.beats) for info in table] == [(0, 1, 3), (1, 3, 3), (2, 3, 3)]
    assert header_value(rows, "M") == "3/4"
    assert _directives(rows) == []
    assert {row.meter for row in rows if row.is_rhythm} == {"3/4"}


def test_meter_change_is_emitted_inline() -> None:
    rows = _rows("a b c | d e\nc d e f g\n")
    assert header_value(rows, "M") == "3/4"
    assert _directives(rows) == [("d", "[M:2/4]")]
    assert [row.meter for row in rows if row.is_rhythm] == ["3/4"] * 3 + ["2/4"] * 2


def test_repeated_meter_is_not_repeated() -> None:
    rows = _rows("a b | c d | e\nc d e f g\n")
    assert _directives(rows) == [("e", "[M:1/4]")]


def test_group_duration_counts_once() -> None:
    rows = _rows("2a.b c.d.e\nc d e f g\n")
    assert header_value(rows, "M") == "3/4"


def test_compound_unit_counts_subdivisions() -> None:
    rows = _rows("[4.] a.b.c d.e.f\nc d e f g a\n")
    assert header_value(rows, "M") == "6/8"


def test_unit_and_meter_change_together() -> None:
    rows = _rows("a b | [4.] c.d.e f.g.a\nc d e f g a b c\n")
    assert header_value(rows, "M") == "2/4"
    assert _directives(rows) == [("c", "[L:1/8] [M:6/8]")]


def test_meter_carries_across_blocks() -> None:
    rows = _rows("a b c\nc d e\n\nd e f\nf g a\n")
    assert _directives(rows) == []


def test_empty_score_defaults_to_common_time() -> None:
    rows = apply_meters(header_rows())
    assert header_value(rows, "M") == "4/4"
