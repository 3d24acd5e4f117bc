"""Key/barline annotator: header key, bar tokens and inline key changes."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Final

from minifqs.header import set_header
from minifqs.rows import Kind, Row, Source
from minifqs.stage import PipelineContext, Stage

#: FQS key signature -> ABC tonic (major keys only)
KEY_SIGNATURE_MAP: Final[dict[str, str]] = {
    "K0": "C",
    "K#1": "G",
    "K#2": "D",
    "K#3": "A",
    "K#4": "E",
    "K#5": "B",
    "K#6": "F#",
    "K#7": "C#",
    "K&1": "F",
    "K&2": "Bb",
    "K&3": "Eb",
    "K&4": "Ab",
    "K&5": "Db",
    "K&6": "Gb",
    "K&7": "Cb",
}

DEFAULT_KEY: Final = "C major"
BAR: Final = "|"


def key_string(token: str) -> str | None:
    tonic = KEY_SIGNATURE_MAP.get(token.strip())
    return f"{tonic} major" if tonic is not None else None


@dataclass
class KeyReport:
    header_key: str = DEFAULT_KEY
    changes: int = 0
    suppressed: int = 0
    warnings: list[str] = field(default_factory=list)


def _lyric_layout(rows: list[Row]) -> tuple[dict[int, list[int]], dict[int, int]]:
    """Lyric barline indices and first rhythm row index, per block."""
    barlines: dict[int, list[int]] = {}
    first_rhythm: dict[int, int] = {}
    for index, row in enumerate(rows):
        if row.source is not Source.LYRIC:
            continue
        if row.kind is Kind.BARLINE:
            barlines.setdefault(row.block, []).append(index)
        elif row.is_rhythm:
            first_rhythm.setdefault(row.block, index)
    return barlines, first_rhythm


def annotate_keys(rows: list[Row]) -> tuple[list[Row], KeyReport]:
    """
    Resolve key signatures and write bar tokens.

    The first key signature of the score becomes the header key. A later
    block's leading key signature becomes an inline key on that block's first
    note; one written after the i-th barline of a pitch line goes on the i-th
    lyric barline of the same block. Keys equal to the active key are dropped.
    """
    report = KeyReport()
    barlines, first_rhythm = _lyric_layout(rows)
    out = [
        replace(row, draft_text=BAR) if row.source is Source.LYRIC and row.kind is Kind.BARLINE else row
        for row in rows
    ]

    active: str | None = None
    current_block: int | None = None
    pitch_bars = 0
    leading = True
    for index, row in enumerate(rows):
        if row.source is not Source.PITCH:
            continue
        if row.block != current_block:
            current_block = row.block
            pitch_bars = 0
            leading = True
        if active is None and not (row.kind is Kind.KEY_SIG and leading):
            # No opening key signature: the score starts in C major.
            active = DEFAULT_KEY
        if row.kind is Kind.BARLINE:
            pitch_bars += 1
            leading = False
            continue
        if row.kind is not Kind.KEY_SIG:
            leading = False
            continue

        is_leading, leading = leading, False
        key = key_string(row.raw_value)
        if key is None:
            report.warnings.append(f"block {row.block}: unknown key signature {row.raw_value!r}, using {DEFAULT_KEY}")
            key = DEFAULT_KEY
        out[index] = replace(out[index], key_name=key)

        if active is None:
            active = report.header_key = key
            continue
        if key == active:
            report.suppressed += 1
            continue

        if is_leading:
            target = first_rhythm.get(row.block)
            if target is None:
                report.warnings.append(f"block {row.block}: key {key} has no notes to apply to")
                continue
            directive = " ".join(filter(None, [f"[K:{key}]", out[target].directive]))
            out[target] = replace(out[target], directive=directive, key_name=key)
        else:
            block_bars = barlines.get(row.block, [])
            if pitch_bars == 0 or pitch_bars > len(block_bars):
                report.warnings.append(
                    f"block {row.block}: key change {row.raw_value!r} has no matching barline, dropped"
                )
                continue
            target = block_bars[pitch_bars - 1]
            out[target] = replace(out[target], draft_text=f"{BAR} [K:{key}]", key_name=key)
        active = key
        report.changes += 1

    return set_header(out, "K", report.header_key), report


class KeySignatureStage(Stage):
    name = "keysig"
    description = "Set the header key, bar tokens and inline key changes"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        annotated, report = annotate_keys(rows)
        for message in report.warnings:
            context.warn(message)
        self.record(
            context,
            header_key=report.header_key,
            changes=report.changes,
            suppressed=report.suppressed,
        )
        return annotated
