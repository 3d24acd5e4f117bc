"""End-to-end tests for the pipeline orchestrator."""

import pytest

from minifqs.errors import FqsSyntaxError, StructuralError, UnknownStageError
from minifqs.pipeline import STAGE_NAMES, convert, iter_stages, run, stage_descriptions
from minifqs.reader import parse_fqs
from minifqs.stage import PipelineOptions

SIMPLE = """Simple Example

Hap.py | birth day to | you - ; |
K&1 cc | d c f | e |
counter: 3
"""

SIMPLE_ABC = """X:1
T:Simple Example
K:F major
M:3/4
L:1/4
C/2C/2| D C F| E2 z|"""


def test_simple_example_end_to_end() -> None:
    result = run(SIMPLE)
    assert result.abc == SIMPLE_ABC
    assert result.warnings == []
    assert result.stopped_at == "generate"


def test_convert_shortcut() -> None:
    assert convert(SIMPLE) == SIMPLE_ABC


def test_accepts_parsed_score() -> None:
    assert run(parse_fqs(SIMPLE)).abc == SIMPLE_ABC


def test_title_override_and_suppression() -> None:
    assert "T:Other" in run(SIMPLE, PipelineOptions(title="Other")).abc.splitlines()
    assert not any(line.startswith("T:") for line in run(SIMPLE, PipelineOptions(title="")).abc.splitlines())


def test_without_optimizer_ties_stay_explicit() -> None:
    abc = run(SIMPLE, PipelineOptions(optimize=False)).abc
    assert abc.splitlines()[-1] == "C/2C/2| D C F| E- E z|"


def test_stage_names_in_order() -> None:
    assert STAGE_NAMES == (
        "parse",
        "flatten",
        "octaves",
        "map",
        "prep",
        "beat",
        "meter",
        "keysig",
        "notes",
        "optimize",
        "generate",
    )
    assert [name for name, _ in stage_descriptions()] == list(STAGE_NAMES)


def test_stop_at_returns_intermediate_rows() -> None:
    result = run(SIMPLE, PipelineOptions(stop_at="octaves"))
    assert result.stopped_at == "octaves"
    assert result.abc == ""
    assert set(result.stats) == {"parse", "flatten", "octaves"}


def test_stop_at_parse_has_no_rows() -> None:
    result = run(SIMPLE, PipelineOptions(stop_at="parse"))
    assert result.rows == []
    assert result.score.title == "Simple Example"


def test_unknown_stage_is_rejected() -> None:
    with pytest.raises(UnknownStageError):
        run(SIMPLE, PipelineOptions(stop_at="render"))


def test_row_count_only_changes_at_header_seeding() -> None:
    previous = None
    for name, rows in iter_stages(SIMPLE):
        if previous is not None and name != "prep":
            assert len(rows) == len(previous), name
        if name == "prep":
            assert len(rows) == len(previous) + 5
        if name != "parse":
            previous = rows


def test_stages_do_not_mutate_their_input() -> None:
    seen = [(name, rows, list(rows)) for name, rows in iter_stages(SIMPLE)]
    for name, rows, snapshot in seen:
        assert rows == snapshot, name


def test_every_stage_records_stats() -> None:
    result = run(SIMPLE)
    assert set(result.stats) == set(STAGE_NAMES)
    assert result.stats["map"]["unmapped"] == 0
    assert result.stats["optimize"]["merged"] == 1
    assert result.stats["keysig"]["header_key"] == "F major"


def test_degradations_become_warnings() -> None:
    result = run("a b c\nc d\n")
    assert result.abc.splitlines()[-1] == "C D z"
    assert len(result.warnings) == 1


def test_multi_block_score() -> None:
    abc = convert("Two Lines\n\na b | c d\nc d | e f\n\ng a | b c\n^g a | b c\n")
    assert abc.splitlines()[-2:] == ["C D| E F", "G A| B c"]


def test_empty_score() -> None:
    assert convert("") == "X:1\nK:C major\nM:4/4\nL:1/4"


def test_syntax_errors_propagate() -> None:
    with pytest.raises(FqsSyntaxError):
        run("a b\nc q\n")


def test_wrong_source_type_is_structural() -> None:
    with pytest.raises(StructuralError):
        run(42)  # type: ignore[arg-type]
