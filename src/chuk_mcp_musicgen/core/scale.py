"""
Scale primitives - ScaleType and Key.

A scale type is a set of semitone offsets from a root.
A key is a scale type applied to a root pitch class, and is the context
the validator uses for scale and chord membership.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from .pitch import PitchClass

# Tonics (major) and relative tonics (minor) that are spelled with flats
_FLAT_MAJOR_TONICS = {PitchClass.F, PitchClass.As, PitchClass.Ds, PitchClass.Gs, PitchClass.Cs}
_FLAT_MINOR_TONICS = {
    PitchClass.D,
    PitchClass.G,
    PitchClass.C,
    PitchClass.F,
    PitchClass.As,
    PitchClass.Ds,
}


@dataclass(frozen=True)
class ScaleType:
    """
    A scale defined by its semitone offsets from the root.

    Offsets are cumulative: major is (0, 2, 4, 5, 7, 9, 11).
    """

    offsets: tuple[int, ...]
    name: str = ""

    MAJOR: ClassVar[ScaleType]
    NATURAL_MINOR: ClassVar[ScaleType]
    HARMONIC_MINOR: ClassVar[ScaleType]
    DORIAN: ClassVar[ScaleType]
    MIXOLYDIAN: ClassVar[ScaleType]

    def __post_init__(self) -> None:
        if not self.offsets or self.offsets[0] != 0:
            raise ValueError(f"Scale offsets must start at 0, got {self.offsets}")
        if list(self.offsets) != sorted(set(self.offsets)) or self.offsets[-1] > 11:
            raise ValueError(f"Scale offsets must be ascending within an octave: {self.offsets}")

    def get_pitches(self, root: PitchClass) -> list[PitchClass]:
        """Pitch classes of this scale from root (octave not repeated)."""
        return [root.transpose(offset) for offset in self.offsets]

    def __str__(self) -> str:
        return self.name


ScaleType.MAJOR = ScaleType((0, 2, 4, 5, 7, 9, 11), "major")
ScaleType.NATURAL_MINOR = ScaleType((0, 2, 3, 5, 7, 8, 10), "minor")
ScaleType.HARMONIC_MINOR = ScaleType((0, 2, 3, 5, 7, 8, 11), "harmonic_minor")
ScaleType.DORIAN = ScaleType((0, 2, 3, 5, 7, 9, 10), "dorian")
ScaleType.MIXOLYDIAN = ScaleType((0, 2, 4, 5, 7, 9, 10), "mixolydian")

_SCALE_ALIASES: dict[str, ScaleType] = {
    "": ScaleType.MAJOR,
    "maj": ScaleType.MAJOR,
    "major": ScaleType.MAJOR,
    "m": ScaleType.NATURAL_MINOR,
    "min": ScaleType.NATURAL_MINOR,
    "minor": ScaleType.NATURAL_MINOR,
    "natural_minor": ScaleType.NATURAL_MINOR,
    "harmonic_minor": ScaleType.HARMONIC_MINOR,
    "dorian": ScaleType.DORIAN,
    "mixolydian": ScaleType.MIXOLYDIAN,
}


@dataclass(frozen=True)
class Key:
    """
    A root pitch class plus a scale type.

    Examples:
        Key(PitchClass.C, ScaleType.MAJOR) = C major
        Key.parse("F#m") = F# minor
    """

    root: PitchClass
    scale: ScaleType

    @property
    def is_minor(self) -> bool:
        return 3 in self.scale.offsets

    @property
    def prefers_flats(self) -> bool:
        """Whether pitches in this key are conventionally spelled with flats."""
        if self.is_minor:
            return self.root in _FLAT_MINOR_TONICS
        return self.root in _FLAT_MAJOR_TONICS

    def get_pitches(self) -> list[PitchClass]:
        return self.scale.get_pitches(self.root)

    def contains(self, pitch_class: PitchClass) -> bool:
        return pitch_class in self.get_pitches()

    def degree_of(self, pitch_class: PitchClass) -> int | None:
        """1-based scale degree of a pitch class, or None if chromatic."""
        pitches = self.get_pitches()
        if pitch_class not in pitches:
            return None
        return pitches.index(pitch_class) + 1

    def degree_to_pitch(self, degree: int) -> PitchClass:
        """Resolve a 1-based scale degree (wrapping past 7) to a pitch class."""
        pitches = self.get_pitches()
        return pitches[(degree - 1) % len(pitches)]

    def canonical_name(self) -> str:
        """Stable name used in fingerprints and notation, e.g. 'Bb_major'."""
        return f"{self.root.spell(self.prefers_flats)}_{self.scale.name}"

    def __str__(self) -> str:
        return f"{self.root.spell(self.prefers_flats)} {self.scale.name.replace('_', ' ')}"

    @classmethod
    def parse(cls, name: str) -> Key:
        """
        Parse a key from 'C', 'Am', 'F#m', 'Bb major', 'D_minor' or 'E_dorian'.

        Raises:
            ValueError: If the root or scale is not recognised
        """
        text = name.strip().replace(" ", "_")
        if not text:
            raise ValueError("Empty key name")

        if "_" in text:
            root_str, scale_str = text.split("_", 1)
        else:
            # Root is the letter plus any accidentals, the remainder is the scale
            idx = 1
            while idx < len(text) and text[idx] in "#b":
                idx += 1
            root_str, scale_str = text[:idx], text[idx:]

        root = PitchClass.parse(root_str)
        scale = _SCALE_ALIASES.get(scale_str.lower() if scale_str != "M" else "major")
        if scale is None:
            raise ValueError(f"Unknown scale type: {scale_str}")
        return cls(root, scale)
