"""
Music data model - Note, Chord, MusicFragment.

This is the canonical in-memory representation produced by generation.
Everything is a frozen dataclass holding tuples: a fragment that has been
validated can be shared across callers without copying.

Time is in quarter-note beats (Fraction) measured from the fragment start.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Union

from chuk_mcp_musicgen.constants import DEFAULT_CHORD_OCTAVE, DEFAULT_VELOCITY
from chuk_mcp_musicgen.core.chord import ChordQuality, chord_symbol
from chuk_mcp_musicgen.core.pitch import Pitch, PitchClass
from chuk_mcp_musicgen.core.rhythm import TimeSignature
from chuk_mcp_musicgen.core.scale import Key


def _check_timing(start: Fraction, duration: Fraction, velocity: int) -> None:
    if start < 0:
        raise ValueError(f"Start must be >= 0, got {start}")
    if duration <= 0:
        raise ValueError(f"Duration must be positive, got {duration}")
    if not 0 <= velocity <= 127:
        raise ValueError(f"Velocity must be 0-127, got {velocity}")


@dataclass(frozen=True)
class Note:
    """
    A single melody note, or a rest when pitch is None.

    A note may extend past its barline only when tied; that is a theory
    rule, not a construction invariant.
    """

    pitch: Pitch | None
    start: Fraction
    duration: Fraction
    velocity: int = DEFAULT_VELOCITY
    tied: bool = False

    def __post_init__(self) -> None:
        _check_timing(self.start, self.duration, self.velocity)

    @property
    def is_rest(self) -> bool:
        return self.pitch is None

    @property
    def end(self) -> Fraction:
        return self.start + self.duration

    def sort_key(self) -> tuple[Fraction, int, int]:
        return (self.start, 1, self.pitch.midi if self.pitch else -1)


@dataclass(frozen=True)
class Chord:
    """
    A chord: ordered pitch classes, root and quality tag.

    The voicing is close position starting from the root in ``octave``.
    """

    pitch_classes: tuple[PitchClass, ...]
    root: PitchClass
    quality: ChordQuality
    start: Fraction
    duration: Fraction
    velocity: int = DEFAULT_VELOCITY
    octave: int = DEFAULT_CHORD_OCTAVE

    def __post_init__(self) -> None:
        _check_timing(self.start, self.duration, self.velocity)
        if not self.pitch_classes:
            raise ValueError("Chord must contain at least one pitch class")
        if len(set(self.pitch_classes)) != len(self.pitch_classes):
            raise ValueError(f"Duplicate pitch classes in chord: {self.pitch_classes}")
        if self.root not in self.pitch_classes:
            raise ValueError(
                f"Chord root {self.root.spell()} is not in its pitch classes "
                f"{[pc.spell() for pc in self.pitch_classes]}"
            )
        # Whole voicing must be playable, not only the root
        low = self.root.value + (self.octave + 1) * 12
        high = low + max(self.root.semitones_to(pc) for pc in self.pitch_classes)
        if low < 0 or high > 127:
            raise ValueError(
                f"Chord {chord_symbol(self.root, self.quality)} in octave {self.octave} "
                f"spans MIDI {low}-{high}, outside 0-127"
            )

    @classmethod
    def build(
        cls,
        root: PitchClass,
        quality: ChordQuality,
        start: Fraction,
        duration: Fraction,
        velocity: int = DEFAULT_VELOCITY,
        octave: int = DEFAULT_CHORD_OCTAVE,
    ) -> Chord:
        """Build a chord whose pitch classes are exactly the quality's tones."""
        return cls(quality.get_pitches(root), root, quality, start, duration, velocity, octave)

    @property
    def end(self) -> Fraction:
        return self.start + self.duration

    @property
    def symbol(self) -> str:
        return chord_symbol(self.root, self.quality)

    @property
    def bass(self) -> Pitch:
        """Lowest sounding pitch of the voicing (the root)."""
        return Pitch.of(self.root, self.octave)

    def voicing(self) -> list[Pitch]:
        """Close voicing above the root, ascending."""
        root_midi = self.bass.midi
        return sorted(Pitch(root_midi + self.root.semitones_to(pc)) for pc in self.pitch_classes)

    def sort_key(self) -> tuple[Fraction, int, int]:
        return (self.start, 0, self.bass.midi)


FragmentEvent = Union[Note, Chord]


@dataclass(frozen=True)
class MusicFragment:
    """
    An immutable musical fragment: events plus key, meter, tempo and length.

    Events are stored in canonical order - by start offset, chords before
    notes at the same offset, then ascending pitch.
    """

    events: tuple[FragmentEvent, ...]
    key: Key
    time_signature: TimeSignature = field(default=TimeSignature.COMMON_TIME)
    tempo: int = 120
    measures: int = 1

    def __post_init__(self) -> None:
        if self.tempo <= 0:
            raise ValueError(f"Tempo must be positive, got {self.tempo}")
        if self.measures <= 0:
            raise ValueError(f"Measures must be positive, got {self.measures}")
        object.__setattr__(self, "events", tuple(sorted(self.events, key=lambda e: e.sort_key())))

    @property
    def notes(self) -> tuple[Note, ...]:
        return tuple(e for e in self.events if isinstance(e, Note))

    @property
    def sounding_notes(self) -> tuple[Note, ...]:
        """Melody notes that are not rests."""
        return tuple(n for n in self.notes if n.pitch is not None)

    @property
    def chords(self) -> tuple[Chord, ...]:
        return tuple(e for e in self.events if isinstance(e, Chord))

    @property
    def total_beats(self) -> Fraction:
        return self.measures * self.time_signature.bar_length

    def note_at(self, offset: Fraction) -> Note | None:
        """The sounding melody note at an offset (latest onset wins)."""
        sounding = [n for n in self.sounding_notes if n.start <= offset < n.end]
        return sounding[-1] if sounding else None

    def location(self, offset: Fraction) -> str:
        """Human-readable location, e.g. 'bar 2, beat 3'."""
        bar = self.time_signature.bar_of(offset)
        beat = offset - bar * self.time_signature.bar_length
        beat_label = f"{float(beat) + 1:g}"
        return f"bar {bar + 1}, beat {beat_label}"
