"""Stage: Strategy interface shared by every row-transforming pipeline step."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from minifqs.logger_config import get_logger
from minifqs.rows import Row
from minifqs.score_models import Score

logger = get_logger("stage")


@dataclass(frozen=True)
class PipelineOptions:
    """
    Run-time settings for one pipeline invocation.

    Attributes:
        title:    Overrides the score title; ``""`` drops the ``T:`` line.
        stop_at:  Name of the stage after which the run stops.
        optimize: When False the optimizer only copies draft text to final text.
    """

    title: str | None = None
    stop_at: str | None = None
    optimize: bool = True


@dataclass
class PipelineContext:
    """Per-run state shared across stages."""

    options: PipelineOptions = field(default_factory=PipelineOptions)
    score: Score | None = None
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, dict[str, Any]] = field(default_factory=dict)
    abc: str = ""

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    @property
    def title(self) -> str:
        if self.options.title is not None:
            return self.options.title
        return self.score.title if self.score is not None else ""


# ── Abstract base ────────────────────────────────────────────────────────────

class Stage(ABC):
    """
    Abstract Strategy for one step of the row pipeline.

    Concrete subclasses wrap a pure function of the previous stage's rows.
    ``run`` returns a new list and never mutates its input.
    """

    name: str = ""
    description: str = ""

    @abstractmethod
    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        """
        Transform the full row table.

        Args:
            rows:    Output of the previous stage.
            context: Shared per-run state for warnings and statistics.

        Returns:
            The new row table.
        """

    def record(self, context: PipelineContext, **stats: Any) -> None:
        context.stats[self.name] = stats
        logger.debug("%s: %s", self.name, stats)
