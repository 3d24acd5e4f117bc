"""Attack mapper: copies resolved pitches onto the lyric rows that sound them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from minifqs.rows import HOLD_KINDS, Accidental, Kind, Row, Source, first_rhythm_kinds
from minifqs.stage import PipelineContext, Stage


@dataclass(frozen=True)
class PitchInfo:
    letter: str
    accidental: Accidental
    octave: int


@dataclass
class MappingReport:
    attacks: int = 0
    ties: int = 0
    mapped: int = 0
    unmapped: int = 0
    warnings: list[str] = field(default_factory=list)


def _pitch_queues(rows: list[Row]) -> dict[int, list[PitchInfo]]:
    queues: dict[int, list[PitchInfo]] = {}
    for row in rows:
        if row.source is Source.PITCH and row.kind is Kind.PITCH and row.has_pitch:
            queues.setdefault(row.block, []).append(
                PitchInfo(
                    letter=row.pitch_letter,
                    accidental=row.accidental or Accidental.NONE,
                    octave=row.absolute_octave,
                )
            )
    return queues


def _with_pitch(row: Row, pitch: PitchInfo) -> Row:
    return replace(
        row,
        pitch_letter=pitch.letter,
        accidental=pitch.accidental,
        absolute_octave=pitch.octave,
    )


def map_attacks(rows: list[Row]) -> tuple[list[Row], MappingReport]:
    """
    Give every attack the next unused pitch of its block and every tie the last attack's pitch.

    A block whose first rhythm row is a hold continues the pitch of the
    previous block's final attack. Rests and attacks with no pitch left
    clear the sustained pitch.

    Returns:
        The annotated rows and a report of counts and degradations.
    """
    queues = _pitch_queues(rows)
    first_kinds = first_rhythm_kinds(rows)
    report = MappingReport()
    consumed: dict[int, int] = {}

    last: PitchInfo | None = None
    last_attack: PitchInfo | None = None
    current_block: int | None = None
    out: list[Row] = []
    for row in rows:
        if row.source is not Source.LYRIC:
            out.append(row)
            continue
        if row.block != current_block:
            current_block = row.block
            last = last_attack if first_kinds.get(row.block) in HOLD_KINDS else None

        if row.is_attack:
            report.attacks += 1
            queue = queues.get(row.block, [])
            used = consumed.get(row.block, 0)
            if used < len(queue):
                last = last_attack = queue[used]
                consumed[row.block] = used + 1
                report.mapped += 1
                row = _with_pitch(row, last)
            else:
                last = last_attack = None
                report.unmapped += 1
                report.warnings.append(
                    f"block {row.block}, measure {row.measure}: attack {row.raw_value!r} has no pitch left"
                )
        elif row.is_hold:
            report.ties += 1
            if last is not None:
                report.mapped += 1
                row = _with_pitch(row, last)
            else:
                report.unmapped += 1
        elif row.kind is Kind.REST:
            last = None
        out.append(row)

    for block, queue in queues.items():
        unused = len(queue) - consumed.get(block, 0)
        if unused > 0:
            report.warnings.append(f"block {block}: {unused} pitch(es) not used by any attack")
    return out, report


class AttackStage(Stage):
    name = "map"
    description = "Map pitches onto attack and tie rows"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        mapped, report = map_attacks(rows)
        for message in report.warnings:
            context.warn(message)
        self.record(
            context,
            attacks=report.attacks,
            ties=report.ties,
            mapped=report.mapped,
            unmapped=report.unmapped,
        )
        return mapped
