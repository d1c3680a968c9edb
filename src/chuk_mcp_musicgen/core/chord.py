"""
Chord primitives - ChordQuality and chord symbol parsing.

A chord quality is a set of semitone offsets from the root, identified by a
stable tag (``major7``, ``dominant7``, ``half-diminished``...). Tags are what
travels over the wire; symbols (``Cmaj7``, ``Bm7b5``) are a display concern.
"""

from __future__ import annotations

from dataclasses import dataclass

from .pitch import PitchClass
from .scale import Key


@dataclass(frozen=True)
class ChordQuality:
    """
    A chord quality: tag, symbol suffix and semitone offsets from the root.

    Offsets are measured from the root, not stacked.
    """

    tag: str
    suffix: str
    offsets: tuple[int, ...]

    def get_pitches(self, root: PitchClass) -> tuple[PitchClass, ...]:
        """Pitch classes of this quality built on root, in offset order."""
        return tuple(root.transpose(offset) for offset in self.offsets)

    def get_midi_notes(self, root_midi: int) -> list[int]:
        """Close root-position voicing as MIDI numbers."""
        return [root_midi + offset for offset in self.offsets]

    @property
    def is_seventh(self) -> bool:
        return len(self.offsets) == 4

    def __str__(self) -> str:
        return self.tag


MAJOR = ChordQuality("major", "", (0, 4, 7))
MINOR = ChordQuality("minor", "m", (0, 3, 7))
DIMINISHED = ChordQuality("diminished", "dim", (0, 3, 6))
AUGMENTED = ChordQuality("augmented", "aug", (0, 4, 8))
MAJOR_7 = ChordQuality("major7", "maj7", (0, 4, 7, 11))
MINOR_7 = ChordQuality("minor7", "m7", (0, 3, 7, 10))
DOMINANT_7 = ChordQuality("dominant7", "7", (0, 4, 7, 10))
DIMINISHED_7 = ChordQuality("diminished7", "dim7", (0, 3, 6, 9))
HALF_DIMINISHED = ChordQuality("half-diminished", "m7b5", (0, 3, 6, 10))
SUS2 = ChordQuality("sus2", "sus2", (0, 2, 7))
SUS4 = ChordQuality("sus4", "sus4", (0, 5, 7))

QUALITIES: dict[str, ChordQuality] = {
    q.tag: q
    for q in (
        MAJOR,
        MINOR,
        DIMINISHED,
        AUGMENTED,
        MAJOR_7,
        MINOR_7,
        DOMINANT_7,
        DIMINISHED_7,
        HALF_DIMINISHED,
        SUS2,
        SUS4,
    )
}

# Suffix spellings accepted from generators
_SUFFIX_ALIASES: dict[str, ChordQuality] = {
    "": MAJOR,
    "maj": MAJOR,
    "M": MAJOR,
    "m": MINOR,
    "min": MINOR,
    "-": MINOR,
    "dim": DIMINISHED,
    "°": DIMINISHED,
    "aug": AUGMENTED,
    "+": AUGMENTED,
    "maj7": MAJOR_7,
    "M7": MAJOR_7,
    "Δ7": MAJOR_7,
    "m7": MINOR_7,
    "min7": MINOR_7,
    "-7": MINOR_7,
    "7": DOMINANT_7,
    "dom7": DOMINANT_7,
    "dim7": DIMINISHED_7,
    "°7": DIMINISHED_7,
    "m7b5": HALF_DIMINISHED,
    "ø": HALF_DIMINISHED,
    "ø7": HALF_DIMINISHED,
    "sus2": SUS2,
    "sus4": SUS4,
    "sus": SUS4,
}


def get_quality(tag: str) -> ChordQuality:
    """
    Look up a quality by tag ('major7') or accepted alias ('maj7', 'half_diminished').

    Raises:
        ValueError: If the tag is unknown
    """
    normalized = tag.strip().replace("_", "-").replace(" ", "")
    if normalized.lower() in QUALITIES:
        return QUALITIES[normalized.lower()]
    if normalized and normalized in _SUFFIX_ALIASES:
        return _SUFFIX_ALIASES[normalized]
    raise ValueError(f"Unknown chord quality: {tag}")


def parse_chord_symbol(symbol: str) -> tuple[PitchClass, ChordQuality]:
    """
    Parse a chord symbol like 'C', 'F#m', 'Bbmaj7', 'Bm7b5' into root + quality.

    Slash-bass suffixes ('C/E') are ignored; the bass is a voicing choice.
    """
    text = symbol.strip().split("/", 1)[0]
    if not text or text[0].upper() not in "ABCDEFG":
        raise ValueError(f"Invalid chord symbol: {symbol}")

    idx = 1
    while idx < len(text) and text[idx] in "#b":
        idx += 1
    root = PitchClass.parse(text[:idx])
    rest = text[idx:]
    if rest in _SUFFIX_ALIASES:
        return root, _SUFFIX_ALIASES[rest]
    raise ValueError(f"Unknown chord suffix in {symbol!r}: {rest!r}")


def chord_symbol(root: PitchClass, quality: ChordQuality, prefer_flats: bool = False) -> str:
    """Render a chord symbol, e.g. 'Bbmaj7'."""
    return f"{root.spell(prefer_flats)}{quality.suffix}"


def match_quality(offsets: set[int]) -> ChordQuality | None:
    """Find the quality whose offsets equal the given set, if any."""
    for quality in QUALITIES.values():
        if set(quality.offsets) == offsets:
            return quality
    return None


def diatonic_chord(key: Key, degree: int, seventh: bool = False) -> tuple[PitchClass, ChordQuality]:
    """
    Build the chord on a scale degree by stacking scale thirds.

    Args:
        key: The key context
        degree: 1-based scale degree
        seventh: Stack a fourth tone

    Returns:
        (root, quality) of the diatonic chord
    """
    root = key.degree_to_pitch(degree)
    size = 4 if seventh else 3
    tones = [key.degree_to_pitch(degree + 2 * i) for i in range(size)]
    offsets = {root.semitones_to(tone) for tone in tones}
    quality = match_quality(offsets)
    if quality is None:
        raise ValueError(f"No chord quality matches degree {degree} of {key}")
    return root, quality
