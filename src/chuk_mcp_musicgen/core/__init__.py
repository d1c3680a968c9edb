"""
Core music primitives.

These are the invariants the rest of the pipeline composes on:
- PitchClass / Pitch: chromatic pitch and concrete MIDI pitch
- ScaleType / Key: scale offsets and key context
- ChordQuality: tagged interval sets and chord symbol parsing
- TimeSignature: bar arithmetic in exact quarter-note beats
"""

from chuk_mcp_musicgen.core.chord import (
    QUALITIES,
    ChordQuality,
    chord_symbol,
    diatonic_chord,
    get_quality,
    match_quality,
    parse_chord_symbol,
)
from chuk_mcp_musicgen.core.pitch import OCTAVE, PERFECT_FIFTH, Pitch, PitchClass
from chuk_mcp_musicgen.core.rhythm import (
    MAX_DENOMINATOR,
    TimeSignature,
    format_beats,
    on_grid,
    to_beats,
)
from chuk_mcp_musicgen.core.scale import Key, ScaleType

__all__ = [
    # Pitch
    "PitchClass",
    "Pitch",
    "PERFECT_FIFTH",
    "OCTAVE",
    # Scale
    "ScaleType",
    "Key",
    # Chord
    "ChordQuality",
    "QUALITIES",
    "get_quality",
    "parse_chord_symbol",
    "chord_symbol",
    "match_quality",
    "diatonic_chord",
    # Rhythm
    "TimeSignature",
    "MAX_DENOMINATOR",
    "to_beats",
    "format_beats",
    "on_grid",
]
