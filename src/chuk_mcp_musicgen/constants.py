"""
Constants and enums for the generation pipeline.

No magic strings - use enums and Literal types for constrained values.
"""

from enum import Enum
from fractions import Fraction
from typing import Literal


class Difficulty(str, Enum):
    """Difficulty tiers, from the content library's vocabulary."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ContentType(str, Enum):
    """Kinds of generated practice content."""

    MELODY = "melody"
    CHORD_PROGRESSION = "chord_progression"
    LEAD_SHEET = "lead_sheet"  # Melody over chords


class Severity(str, Enum):
    """Severity of a theory violation. Only ERROR blocks acceptance."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.ERROR: 2}


class GenerationState(str, Enum):
    """Orchestrator state machine states."""

    PENDING = "pending"
    GENERATING = "generating"
    VALIDATING = "validating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"  # One attempt failed theory checks; a retry may follow
    RETRY_EXHAUSTED = "retry_exhausted"


# Default synthesis channels (0-indexed MIDI channels)
MELODY_CHANNEL = 0
CHORD_CHANNEL = 1

DEFAULT_VELOCITY = 80
DEFAULT_CHORD_OCTAVE = 3

# Melody register (MIDI) by difficulty
MELODY_RANGE: dict[Difficulty, tuple[int, int]] = {
    Difficulty.BEGINNER: (60, 79),  # C4-G5
    Difficulty.INTERMEDIATE: (55, 84),  # G3-C6
    Difficulty.ADVANCED: (48, 91),  # C3-G6
}

# Chord voicing register (MIDI), shared by all tiers
CHORD_RANGE: tuple[int, int] = (36, 76)  # C2-E5

# Largest melodic leap (semitones) before a violation is raised
MAX_LEAP: dict[Difficulty, int] = {
    Difficulty.BEGINNER: 7,  # Perfect fifth
    Difficulty.INTERMEDIATE: 12,  # Octave
    Difficulty.ADVANCED: 19,  # Octave + fifth
}

# Finest rhythmic grid (beats) expected per tier
RHYTHM_GRID: dict[Difficulty, Fraction] = {
    Difficulty.BEGINNER: Fraction(1, 2),  # Eighths
    Difficulty.INTERMEDIATE: Fraction(1, 4),  # Sixteenths
    Difficulty.ADVANCED: Fraction(1, 12),  # Sixteenths and triplets
}

# Share of chromatic melody notes above which the scale rule errors
MAX_CHROMATIC_RATIO = 0.25

TEMPO_RANGE: tuple[int, int] = (40, 240)
LENGTH_RANGE: tuple[int, int] = (1, 64)

# Schema versions
SchemaVersion = Literal["notation/v1", "timeline/v1", "content/v1"]
NOTATION_SCHEMA: SchemaVersion = "notation/v1"
TIMELINE_SCHEMA: SchemaVersion = "timeline/v1"


class ErrorMessages:
    """Standardized error messages."""

    CONTENT_NOT_FOUND = "Content '{content_id}' not found."
    INVALID_KEY = "Invalid key: '{key}'. Expected a form like 'C', 'Am', 'F#_minor'."
    INVALID_TEMPO = "Invalid tempo: {tempo}. Must be between 40 and 240 BPM."
    GENERATION_FAILED = "Generation failed after {attempts} attempts."


class SuccessMessages:
    """Standardized success messages."""

    CONTENT_GENERATED = "Generated {content_type} in {key} ({measures} bars)."
    CONTENT_RETIMED = "Retimed content '{content_id}' to {tempo} BPM."
    MIDI_EXPORTED = "Exported content '{content_id}' to {path}."
