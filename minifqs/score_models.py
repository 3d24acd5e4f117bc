"""Immutable AST for FQS scores, as produced by the reader and consumed by the flattener."""

from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass
from typing import Any, Union

SPECIAL_CHARS: frozenset[str] = frozenset({"*", "-", "=", ";"})


@dataclass(frozen=True)
class Syllable:
    """One sung syllable; always an attack."""

    value: str


@dataclass(frozen=True)
class Special:
    """A rhythm marker: ``*`` attack, ``-`` tie, ``=`` double hold, ``;`` rest."""

    value: str


Segment = Union[Syllable, Special]


@dataclass(frozen=True)
class BeatTuple:
    """
    One beat group of the lyric line.

    Attributes:
        content:  Segments sharing the beat, one subdivision each.
        duration: Number of beats the whole group occupies (``2word`` → 2).
    """

    content: tuple[Segment, ...]
    duration: int = 1


@dataclass(frozen=True)
class Barline:
    """A ``|`` in either line."""


@dataclass(frozen=True)
class BeatDuration:
    """Inline beat-duration directive such as ``[4]`` or ``[4.]``."""

    duration: int
    dotted: bool = False

    @property
    def text(self) -> str:
        return f"[{self.duration}{'.' if self.dotted else ''}]"


@dataclass(frozen=True)
class KeySignature:
    """``K0``, ``K#n`` or ``K&n``."""

    accidental: str | None
    count: int

    @property
    def text(self) -> str:
        return f"K{self.accidental or ''}{self.count}"


@dataclass(frozen=True)
class Pitch:
    """
    A relative pitch from the pitch line.

    Attributes:
        note:          Letter ``a``–``g``.
        accidental:    ``#``, ``##``, ``&``, ``&&``, ``%`` or None.
        octave_shifts: Explicit markers, ``^`` up and ``/`` down.
    """

    note: str
    accidental: str | None = None
    octave_shifts: str = ""

    @property
    def text(self) -> str:
        return f"{self.octave_shifts}{self.accidental or ''}{self.note}"


LyricItem = Union[BeatTuple, Barline, BeatDuration]
PitchItem = Union[Pitch, Barline, KeySignature]


@dataclass(frozen=True)
class PitchLine:
    key_signature: KeySignature | None
    elements: tuple[PitchItem, ...]


@dataclass(frozen=True)
class Block:
    """A lyric line paired with its pitch line and optional pickup counter."""

    lyrics: tuple[LyricItem, ...]
    pitches: PitchLine
    counter: int | None = None


@dataclass(frozen=True)
class Score:
    blocks: tuple[Block, ...]
    title: str = ""


def node_to_dict(node: Any) -> Any:
    """Convert an AST node into JSON-ready data, tagging each node with its type."""
    if is_dataclass(node) and not isinstance(node, type):
        data: dict[str, Any] = {"type": type(node).__name__}
        for f in fields(node):
            data[f.name] = node_to_dict(getattr(node, f.name))
        return data
    if isinstance(node, (list, tuple)):
        return [node_to_dict(item) for item in node]
    return node
