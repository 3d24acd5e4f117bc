"""Assembler: header lines plus one ABC music line per block."""

from __future__ import annotations

import re
from typing import Final

from minifqs.rows import Row, Source
from minifqs.stage import PipelineContext, Stage

_SPACES: Final = re.compile(r"\s+")
_SPACE_BEFORE_BAR: Final = re.compile(r"\s+\|")
_BAR_WITHOUT_SPACE: Final = re.compile(r"\|(?!\||$)")
# Bars, spaces and inline fields that may sit between a note and its tie mark.
_BETWEEN = r"(?:[ |]+|\[[KLM]:[^\]]*\])"
_DETACHED_TIE: Final = re.compile(rf"(?<=[A-Ga-g,'\d/])({_BETWEEN}+)-")
_LINE_END: Final = re.compile(rf"(?<=[A-Ga-g,'\d/])({_BETWEEN}*)$")
_OPENING_TIE: Final = re.compile(r"^((?:\[[KLM]:[^\]]*\] )*)-")


def normalize_line(text: str) -> str:
    """
    Tidy one music line: single spaces, no space before a barline, one space
    after it unless another barline or the line end follows, and tie marks
    kept against the note they extend, ahead of any bars or inline fields.
    """
    text = _SPACES.sub(" ", text).strip()
    text = _SPACE_BEFORE_BAR.sub("|", text)
    text = _BAR_WITHOUT_SPACE.sub("| ", text)
    text = _DETACHED_TIE.sub(r"-\1", text)
    return _SPACES.sub(" ", text).strip()


def carry_opening_ties(lines: list[str]) -> list[str]:
    """
    Move a tie that opens a line onto the last note of the line before it.

    A line whose predecessor does not end on a note keeps its mark.
    """
    out: list[str] = []
    for line in lines:
        match = _OPENING_TIE.match(line)
        if match and out:
            tied, count = _LINE_END.subn(r"-\1", out[-1], count=1)
            if count:
                out[-1] = tied
                line = (match.group(1) + line[match.end():]).strip()
        out.append(line)
    return out


def header_lines(rows: list[Row]) -> list[str]:
    lines = []
    for row in rows:
        if row.source is not Source.HEADER:
            continue
        value = row.text
        if row.raw_value == "T" and not value:
            continue
        lines.append(f"{row.raw_value}:{value}")
    return lines


def body_lines(rows: list[Row]) -> list[str]:
    pieces: dict[int, list[str]] = {}
    for row in rows:
        if row.source is not Source.LYRIC:
            continue
        parts = pieces.setdefault(row.block, [])
        if row.directive:
            parts.append(row.directive)
        if row.text:
            parts.append(row.text)
    lines = (normalize_line(" ".join(parts)) for parts in pieces.values())
    return carry_opening_ties([line for line in lines if line])


def assemble(rows: list[Row]) -> str:
    """Render the final rows as ABC text. Pitch rows never contribute."""
    return "\n".join(header_lines(rows) + body_lines(rows))


class AssembleStage(Stage):
    name = "generate"
    description = "Assemble the ABC text"

    def run(self, rows: list[Row], context: PipelineContext) -> list[Row]:
        context.abc = assemble(rows)
        self.record(context, lines=context.abc.count("\n") + 1 if context.abc else 0)
        return rows
