"""MidiExporter: plays the final pipeline rows into a Standard MIDI File."""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Final

from midiutil import MIDIFile

from minifqs.beat_unit import COMPOUND_UNIT, DEFAULT_UNIT
from minifqs.header import header_value
from minifqs.keysig import DEFAULT_KEY, KEY_SIGNATURE_MAP
from minifqs.notes import subdivision_length
from minifqs.rows import Accidental, Kind, Row, Source, beat_groups

# In midiutil Format 1 MIDI, track 0 is the conductor/tempo track.
TRACK_CONDUCTOR = 0
TRACK_MELODY = 1
CHANNEL_MELODY = 0

SEMITONES_PER_OCTAVE = 12
PITCH_CLASSES: Final[dict[str, int]] = {"c": 0, "d": 2, "e": 4, "f": 5, "g": 7, "a": 9, "b": 11}

SHARP_ORDER: Final = "fcgdaeb"
FLAT_ORDER: Final = "beadgcf"


def key_alterations(key_name: str) -> dict[str, int]:
    """
    Letters altered by a major key, e.g. ``"F major"`` → ``{"b": -1}``.

    Unknown keys alter nothing.
    """
    for token, tonic in KEY_SIGNATURE_MAP.items():
        if f"{tonic} major" != key_name:
            continue
        if token == "K0":
            return {}
        count = int(token[2:])
        if token[1] == "#":
            return {letter: 1 for letter in SHARP_ORDER[:count]}
        return {letter: -1 for letter in FLAT_ORDER[:count]}
    return {}


def midi_number(letter: str, octave: int, alteration: int = 0) -> int:
    """MIDI note number; octave 4 holds middle C (60)."""
    return (octave + 1) * SEMITONES_PER_OCTAVE + PITCH_CLASSES[letter] + alteration


@dataclass
class NoteEvent:
    """One sounding note; ``start`` and ``duration`` are in quarter notes."""

    pitch: int
    start: Fraction
    duration: Fraction


class _AccidentalState:
    """ABC accidental rules: explicit marks last until the barline, else the key applies."""

    def __init__(self, key_name: str) -> None:
        self.key = key_alterations(key_name)
        self.measure: dict[tuple[str, int], int] = {}

    def change_key(self, key_name: str) -> None:
        self.key = key_alterations(key_name)
        self.measure.clear()

    def barline(self) -> None:
        self.measure.clear()

    def alteration(self, letter: str, octave: int, accidental: Accidental | None) -> int:
        if accidental is not None and accidental is not Accidental.NONE:
            self.measure[(letter, octave)] = accidental.semitones
            return accidental.semitones
        if (letter, octave) in self.measure:
            return self.measure[(letter, octave)]
        return self.key.get(letter, 0)


def note_events(rows: list[Row]) -> list[NoteEvent]:
    """
    Derive note events from the final rows.

    A beat group lasts ``beat_duration`` units in simple units and
    ``N × subdivision length`` units in compound units; one unit is
    ``unit_length × 4`` quarter notes. Holds extend the sounding note.
    """
    group_of: dict[int, tuple[int, ...]] = {}
    for indices in beat_groups(rows).values():
        for index in indices:
            group_of[index] = tuple(indices)

    state = _AccidentalState(header_value(rows, "K") or DEFAULT_KEY)
    events: list[NoteEvent] = []
    sounding: NoteEvent | None = None
    time = Fraction(0)

    for index, row in enumerate(rows):
        if row.source is not Source.LYRIC:
            continue
        if row.key_name is not None:
            state.change_key(row.key_name)
        if row.kind is Kind.BARLINE:
            state.barline()
            continue
        if index not in group_of:
            continue

        indices = group_of[index]
        first = rows[indices[0]]
        unit = first.unit_length or DEFAULT_UNIT
        count = len(indices)
        beat_duration = first.beat_duration or Fraction(1)
        if unit == COMPOUND_UNIT:
            span = count * subdivision_length(count, beat_duration, unit)
        else:
            span = Fraction(beat_duration)
        step = span / count * unit * 4

        if row.is_attack and row.has_pitch:
            alteration = state.alteration(row.pitch_letter, row.absolute_octave, row.accidental)
            sounding = NoteEvent(midi_number(row.pitch_letter, row.absolute_octave, alteration), time, step)
            events.append(sounding)
        elif row.is_hold and row.has_pitch and sounding is not None:
            sounding.duration += step
        else:
            sounding = None
        time += step
    return events


class MidiExporter:
    """
    Writes a melody from the final pipeline rows to a MIDI file.

    Track layout (Format 1)
    -----------------------
    Track 0 is the conductor track (tempo only, no notes).
    Track 1 is the melody line.
    """

    DEFAULT_TEMPO = 100  # quarter notes per minute
    DEFAULT_VELOCITY = 80

    def __init__(self, tempo: int = DEFAULT_TEMPO, velocity: int = DEFAULT_VELOCITY) -> None:
        """
        Args:
            tempo:    Playback tempo in quarter notes per minute.
            velocity: MIDI note-on velocity.
        """
        self.tempo = tempo
        self.velocity = velocity

    def build(self, rows: list[Row], track_name: str = "Melody") -> MIDIFile:
        midi = MIDIFile(numTracks=2, removeDuplicates=False, deinterleave=False)
        midi.addTempo(TRACK_CONDUCTOR, 0, self.tempo)
        midi.addTrackName(TRACK_MELODY, 0, track_name or "Melody")
        for event in note_events(rows):
            midi.addNote(
                track=TRACK_MELODY,
                channel=CHANNEL_MELODY,
                pitch=event.pitch,
                time=float(event.start),
                duration=float(event.duration),
                volume=self.velocity,
            )
        return midi

    def export(self, rows: list[Row], output_path: str, track_name: str = "Melody") -> None:
        """
        Render rows to a Standard MIDI File.

        Args:
            rows:        Final rows of a pipeline run.
            output_path: Destination file path (e.g. "song.mid").

        Raises:
            OSError: If the output file cannot be opened for writing.
        """
        midi = self.build(rows, track_name)
        with open(output_path, "wb") as f:
            midi.writeFile(f)
