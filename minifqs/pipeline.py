"""Pipeline: runs the stages in order, optionally stopping at a named stage."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Final

from minifqs.assembler import AssembleStage
from minifqs.attacks import AttackStage
from minifqs.beat_unit import BeatUnitStage
from minifqs.errors import StructuralError, UnknownStageError
from minifqs.flattener import FlattenStage
from minifqs.header import HeaderStage
from minifqs.keysig import KeySignatureStage
from minifqs.logger_config import get_logger
from minifqs.meter import MeterStage
from minifqs.notes import NoteStage
from minifqs.octaves import OctaveStage
from minifqs.optimizer import OptimizeStage
from minifqs.reader import parse_fqs
from minifqs.rows import Row
from minifqs.score_models import Score
from minifqs.stage import PipelineContext, PipelineOptions, Stage

logger = get_logger("pipeline")

PARSE_STAGE: Final = "parse"
PARSE_DESCRIPTION: Final = "Read FQS text into a score"

STAGES: Final[tuple[Stage, ...]] = (
    FlattenStage(),
    OctaveStage(),
    AttackStage(),
    HeaderStage(),
    BeatUnitStage(),
    MeterStage(),
    KeySignatureStage(),
    NoteStage(),
    OptimizeStage(),
    AssembleStage(),
)

STAGE_NAMES: Final[tuple[str, ...]] = (PARSE_STAGE,) + tuple(stage.name for stage in STAGES)


@dataclass(frozen=True)
class PipelineResult:
    """
    Outcome of one run.

    Attributes:
        abc:        ABC text; empty when the run stopped before ``generate``.
        rows:       Rows produced by the last stage that ran.
        score:      The parsed score.
        warnings:   Non-fatal degradations, in the order they were found.
        stats:      Per-stage statistics keyed by stage name.
        stopped_at: Name of the last stage that ran.
    """

    abc: str
    rows: list[Row]
    score: Score
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, dict[str, Any]] = field(default_factory=dict)
    stopped_at: str = STAGES[-1].name


def stage_descriptions() -> list[tuple[str, str]]:
    return [(PARSE_STAGE, PARSE_DESCRIPTION)] + [(stage.name, stage.description) for stage in STAGES]


def _check_stage_name(name: str | None) -> None:
    if name is not None and name not in STAGE_NAMES:
        raise UnknownStageError(f"Unknown stage '{name}'. Use one of: {', '.join(STAGE_NAMES)}.")


def _load_score(source: str | Score) -> Score:
    if isinstance(source, Score):
        return source
    if isinstance(source, str):
        return parse_fqs(source)
    raise StructuralError(f"Expected FQS text or a Score, got {type(source).__name__}")


def iter_stages(
    source: str | Score,
    options: PipelineOptions | None = None,
    context: PipelineContext | None = None,
) -> Iterator[tuple[str, list[Row]]]:
    """
    Run the pipeline one stage at a time, yielding ``(stage name, rows)``
    after each, for hosts that inspect intermediate tables.

    ``options.stop_at`` is honoured; the ``parse`` step yields no rows.
    """
    options = options or PipelineOptions()
    _check_stage_name(options.stop_at)
    if context is None:
        context = PipelineContext(options=options)
    context.score = _load_score(source)
    context.stats[PARSE_STAGE] = {"blocks": len(context.score.blocks), "title": context.score.title}
    yield PARSE_STAGE, []
    if options.stop_at == PARSE_STAGE:
        return

    rows: list[Row] = []
    for stage in STAGES:
        logger.debug("running stage %s", stage.name)
        rows = stage.run(rows, context)
        yield stage.name, rows
        if stage.name == options.stop_at:
            return


def run(source: str | Score, options: PipelineOptions | None = None) -> PipelineResult:
    """
    Convert FQS text (or an already parsed Score) to ABC.

    Raises:
        FqsSyntaxError:    If ``source`` text does not parse.
        StructuralError:   If the score is malformed.
        UnknownStageError: If ``options.stop_at`` is not a stage name.
    """
    options = options or PipelineOptions()
    context = PipelineContext(options=options)
    name, rows = PARSE_STAGE, []
    for name, rows in iter_stages(source, options, context):
        pass
    assert context.score is not None
    return PipelineResult(
        abc=context.abc,
        rows=rows,
        score=context.score,
        warnings=list(context.warnings),
        stats=dict(context.stats),
        stopped_at=name,
    )


def convert(text: str, title: str | None = None) -> str:
    """Shortcut: FQS text in, ABC text out."""
    return run(text, PipelineOptions(title=title)).abc
