"""Reader: turns FQS source text into the immutable Score AST."""

from __future__ import annotations

import re
from typing import Final

from minifqs.errors import FqsSyntaxError
from minifqs.score_models import (
    SPECIAL_CHARS,
    Barline,
    BeatDuration,
    BeatTuple,
    Block,
    KeySignature,
    LyricItem,
    Pitch,
    PitchItem,
    PitchLine,
    Score,
    Segment,
    Special,
    Syllable,
)

_BEAT_DURATION_RE: Final = re.compile(r"^\[(\d+)(\.)?\]$")
_BEAT_TUPLE_RE: Final = re.compile(r"^(\d*)(.*)$")
_SEGMENT_RE: Final = re.compile(r"[*\-=;]|[^*\-=;.]+")
_KEY_SIGNATURE_RE: Final = re.compile(r"^K(?:0|([#&])([1-7]))$")
_PITCH_RE: Final = re.compile(r"([\^/]*)(##|#|&&|&|%)?([a-g])")
_COUNTER_RE: Final = re.compile(r"^counter:\s*(\d+)$", re.IGNORECASE)


def _split_chunks(text: str) -> list[list[tuple[int, str]]]:
    """Group non-blank lines into chunks separated by blank lines, keeping 1-based line numbers."""
    chunks: list[list[tuple[int, str]]] = []
    current: list[tuple[int, str]] = []
    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            if current:
                chunks.append(current)
                current = []
            continue
        current.append((line_no, line))
    if current:
        chunks.append(current)
    return chunks


def _spaced_barlines(line: str) -> list[str]:
    return line.replace("|", " | ").split()


def parse_segments(word: str) -> tuple[Segment, ...]:
    """Split the content of one beat tuple into syllables and special markers."""
    segments: list[Segment] = []
    for piece in _SEGMENT_RE.findall(word):
        if piece in SPECIAL_CHARS:
            segments.append(Special(piece))
        else:
            segments.append(Syllable(piece))
    return tuple(segments)


def parse_lyric_line(line: str, line_no: int | None = None) -> tuple[LyricItem, ...]:
    items: list[LyricItem] = []
    for word in _spaced_barlines(line):
        if word == "|":
            items.append(Barline())
            continue

        directive = _BEAT_DURATION_RE.match(word)
        if directive:
            items.append(BeatDuration(int(directive.group(1)), dotted=directive.group(2) == "."))
            continue
        if word.startswith("["):
            raise FqsSyntaxError("malformed beat-duration directive", line_no, word)

        match = _BEAT_TUPLE_RE.match(word)
        assert match is not None
        duration_text, rest = match.groups()
        content = parse_segments(rest)
        if not content:
            raise FqsSyntaxError("beat group has no syllables or markers", line_no, word)
        duration = int(duration_text) if duration_text else 1
        if duration < 1:
            raise FqsSyntaxError("beat duration must be at least 1", line_no, word)
        items.append(BeatTuple(content=content, duration=duration))
    return tuple(items)


def _parse_key_signature(word: str) -> KeySignature | None:
    match = _KEY_SIGNATURE_RE.match(word)
    if not match:
        return None
    accidental, count = match.groups()
    return KeySignature(accidental=accidental, count=int(count) if count else 0)


def _parse_pitch_word(word: str, line_no: int | None) -> list[Pitch]:
    pitches: list[Pitch] = []
    pos = 0
    while pos < len(word):
        match = _PITCH_RE.match(word, pos)
        if not match:
            raise FqsSyntaxError("unrecognised pitch", line_no, word[pos:])
        shifts, accidental, note = match.groups()
        pitches.append(Pitch(note=note, accidental=accidental, octave_shifts=shifts))
        pos = match.end()
    return pitches


def parse_pitch_line(line: str, line_no: int | None = None) -> PitchLine:
    words = _spaced_barlines(line)
    key_signature: KeySignature | None = None
    if words:
        key_signature = _parse_key_signature(words[0])
        if key_signature is not None:
            words = words[1:]

    elements: list[PitchItem] = []
    for word in words:
        if word == "|":
            elements.append(Barline())
            continue
        inline_key = _parse_key_signature(word)
        if inline_key is not None:
            elements.append(inline_key)
            continue
        if word.startswith("K"):
            raise FqsSyntaxError("malformed key signature", line_no, word)
        elements.extend(_parse_pitch_word(word, line_no))
    return PitchLine(key_signature=key_signature, elements=tuple(elements))


def _parse_block(chunk: list[tuple[int, str]]) -> Block:
    first_no, first_line = chunk[0]
    if len(chunk) < 2:
        raise FqsSyntaxError("block has a lyric line but no pitch line", first_no, first_line)
    if len(chunk) > 3:
        extra_no, extra_line = chunk[3]
        raise FqsSyntaxError("unexpected line in block", extra_no, extra_line)

    lyrics = parse_lyric_line(first_line, first_no)
    pitch_no, pitch_line = chunk[1]
    pitches = parse_pitch_line(pitch_line, pitch_no)

    counter: int | None = None
    if len(chunk) == 3:
        counter_no, counter_line = chunk[2]
        match = _COUNTER_RE.match(counter_line)
        if not match:
            raise FqsSyntaxError("expected 'counter: N'", counter_no, counter_line)
        counter = int(match.group(1))
    return Block(lyrics=lyrics, pitches=pitches, counter=counter)


def parse_fqs(text: str) -> Score:
    """
    Parse FQS source into a Score.

    The first chunk is the title when it consists of a single line; every
    other chunk is a block of lyric line, pitch line and optional counter.

    Raises:
        FqsSyntaxError: With the offending line number and text.
    """
    chunks = _split_chunks(text)
    title = ""
    if chunks and len(chunks[0]) == 1:
        title = chunks[0][0][1]
        chunks = chunks[1:]
    return Score(blocks=tuple(_parse_block(chunk) for chunk in chunks), title=title)
