"""Flattener: expands the Score AST into the initial row table."""

from __future__ import annotations

from fractions import Fraction

from minifqs.errors import StructuralError
from minifqs.rows import SPECIAL_KINDS, Accidental, Kind, Row, Source
from minifqs.score_models import (
    Barline,
    BeatDuration,
    BeatTuple,
    Block,
    KeySignature,
    Pitch,
    Score,
    Special,
    Syllable,
)
from minifqs.stage import PipelineContext, Stage


def _lyric_rows(block_no: int, block: Block) -> list[Row]:
    rows: list[Row] = []
    measure = 0 if block.counter is not None else 1
    beat = 1
    for item in block.lyrics:
        if isinstance(item, Barline):
            rows.append(
                Row(Source.LYRIC, block_no, Kind.BARLINE, "|", measure=measure, pickup_counter=block.counter)
            )
            measure += 1
            beat = 1
        elif isinstance(item, BeatDuration):
            rows.append(
                Row(
                    Source.LYRIC,
                    block_no,
                    Kind.BEAT_DURATION_DIRECTIVE,
                    item.text,
                    measure=measure,
                    pickup_counter=block.counter,
                )
            )
        elif isinstance(item, BeatTuple):
            for subdivision, segment in enumerate(item.content, start=1):
                if isinstance(segment, Syllable):
                    kind = Kind.SYLLABLE
                elif isinstance(segment, Special) and segment.value in SPECIAL_KINDS:
                    kind = SPECIAL_KINDS[segment.value]
                else:
                    raise StructuralError(f"Unknown lyric segment {segment!r} in block {block_no}")
                rows.append(
                    Row(
                        Source.LYRIC,
                        block_no,
                        kind,
                        segment.value,
                        measure=measure,
                        beat=beat,
                        subdivision=subdivision,
                        beat_duration=Fraction(item.duration),
                        pickup_counter=block.counter,
                    )
                )
            beat += item.duration
        else:
            raise StructuralError(f"Unknown lyric node {item!r} in block {block_no}")
    return rows


def _key_row(block_no: int, key: KeySignature, measure: int) -> Row:
    return Row(Source.PITCH, block_no, Kind.KEY_SIG, key.text, measure=measure)


def _pitch_rows(block_no: int, block: Block) -> list[Row]:
    rows: list[Row] = []
    measure = 0 if block.counter is not None else 1
    if block.pitches.key_signature is not None:
        rows.append(_key_row(block_no, block.pitches.key_signature, measure))
    for element in block.pitches.elements:
        if isinstance(element, Barline):
            rows.append(Row(Source.PITCH, block_no, Kind.BARLINE, "|", measure=measure))
            measure += 1
        elif isinstance(element, KeySignature):
            rows.append(_key_row(block_no, element, measure))
        elif isinstance(element, Pitch):
            shift = element.octave_shifts.count("^") - element.octave_shifts.count("/")
            rows.append(
                Row(
                    Source.PITCH,
                    block_no,
                    Kind.PITCH,
                    element.text,
                    measure=measure,
                    pitch_letter=element.note,
                    accidental=Accidental.from_fqs(element.accidental),
                    octave_shift=shift,
                )
            )
        else:
            raise StructuralError(f"Unknown pitch node {element!r} in block {block_no}")
    return rows


def flatten(score: Score) -> list[Row]:
    """
    Expand a Score into rows: per block, lyric rows then pitch rows.

    Raises:
        StructuralError: If ``score`` is not a Score or holds unknown nodes.
    """
    if not isinstance(score, Score):
        raise StructuralError(f"Expected a Score, got {type(score).__name__}")
    rows: list[Row] = []
    for block_no, block in enumerate(score.blocks, start=1):
        if not isinstance(block, Block):
            raise StructuralError(f"Expected a Block, got {type(block).__name__}")
        rows.extend(_lyric_rows(block_no, block))
        rows.extend(_pitch_rows(block_no, block))
    return rows


class FlattenStage(Stage):
    name = "flatten"
    description = "Expand the parsed score into lyric and pitch rows"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        flat = flatten(context.score)
        self.record(
            context,
            rows=len(flat),
            lyric_rows=sum(1 for row in flat if row.source is Source.LYRIC),
            pitch_rows=sum(1 for row in flat if row.source is Source.PITCH),
        )
        return flat
