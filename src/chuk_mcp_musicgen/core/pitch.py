"""
Pitch primitives - PitchClass and Pitch.

PitchClass is one of the 12 chromatic pitches (octave-independent).
Pitch is a pitch class placed in an octave, convertible to a MIDI number.
Rests are represented by the absence of a Pitch, not by a sentinel value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum

_SHARP_NAMES: list[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
_FLAT_NAMES: list[str] = ["C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B"]

# Letter + accidentals + signed octave, e.g. "C4", "F#3", "Bb-1"
_PITCH_RE = re.compile(r"^([A-Ga-g])([#b]*)(-?\d+)$")

PERFECT_FIFTH = 7
OCTAVE = 12


class PitchClass(IntEnum):
    """
    The 12 chromatic pitch classes (0-11).

    Enharmonic equivalents share a value (C# == Db == 1).
    Spelling is a display concern, chosen at serialization time.
    """

    C = 0
    Cs = 1
    D = 2
    Ds = 3
    E = 4
    F = 5
    Fs = 6
    G = 7
    Gs = 8
    A = 9
    As = 10
    B = 11

    def transpose(self, semitones: int) -> PitchClass:
        """Transpose by a number of semitones (positive or negative)."""
        return PitchClass((self.value + semitones) % 12)

    def semitones_to(self, other: PitchClass) -> int:
        """Ascending distance in semitones to another pitch class (0-11)."""
        return (other.value - self.value) % 12

    def spell(self, prefer_flats: bool = False) -> str:
        """Get human-readable name."""
        names = _FLAT_NAMES if prefer_flats else _SHARP_NAMES
        return names[self.value]

    @classmethod
    def from_midi(cls, midi_note: int) -> PitchClass:
        """Extract pitch class from MIDI note number."""
        return cls(midi_note % 12)

    @classmethod
    def parse(cls, name: str) -> PitchClass:
        """Parse a pitch class from 'C', 'C#', 'Db', 'Cs' or double accidentals like 'Bbb'."""
        name = name.strip()
        if name in _SHARP_NAMES:
            return cls(_SHARP_NAMES.index(name))
        if name in _FLAT_NAMES:
            return cls(_FLAT_NAMES.index(name))

        for member in cls:
            if member.name.upper() == name.upper():
                return member

        if name and name[0].upper() in "ABCDEFG" and set(name[1:]) <= {"#", "b"}:
            base = _SHARP_NAMES.index(name[0].upper())
            shift = name[1:].count("#") - name[1:].count("b")
            return cls((base + shift) % 12)

        raise ValueError(f"Unknown pitch class: {name}")


@dataclass(frozen=True, order=True)
class Pitch:
    """
    A concrete pitch: pitch class + octave.

    Ordered by MIDI number. C4 is middle C (MIDI 60).
    """

    midi: int

    def __post_init__(self) -> None:
        if not 0 <= self.midi <= 127:
            raise ValueError(f"Pitch must be 0-127, got {self.midi}")

    @classmethod
    def of(cls, pitch_class: PitchClass, octave: int) -> Pitch:
        """Build a pitch from a pitch class and octave."""
        return cls(pitch_class.value + (octave + 1) * 12)

    @property
    def pitch_class(self) -> PitchClass:
        return PitchClass.from_midi(self.midi)

    @property
    def octave(self) -> int:
        return self.midi // 12 - 1

    def transpose(self, semitones: int) -> Pitch:
        return Pitch(self.midi + semitones)

    def spell(self, prefer_flats: bool = False) -> str:
        """Scientific pitch notation, e.g. 'C#4'."""
        return f"{self.pitch_class.spell(prefer_flats)}{self.octave}"

    @classmethod
    def parse(cls, value: str | int) -> Pitch:
        """
        Parse a pitch from scientific notation ('E4', 'Bb3') or a MIDI number.

        Raises:
            ValueError: If the value is not a recognisable pitch
        """
        if isinstance(value, bool):
            raise ValueError(f"Invalid pitch: {value!r}")
        if isinstance(value, int):
            return cls(value)

        text = value.strip()
        if text.lstrip("-").isdigit():
            return cls(int(text))

        match = _PITCH_RE.match(text)
        if match is None:
            raise ValueError(f"Invalid pitch: {value!r}")
        letter, accidentals, octave = match.groups()
        # Cb4 is B3 and B#3 is C4: the octave belongs to the letter, not the pitch class
        base = _SHARP_NAMES.index(letter.upper())
        shift = accidentals.count("#") - accidentals.count("b")
        return cls(base + shift + (int(octave) + 1) * 12)

    def __str__(self) -> str:
        return self.spell()
