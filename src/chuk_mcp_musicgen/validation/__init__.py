"""
Music theory validation.

Rules are independent, stateless checks; the validator runs them in order
and reports pass/fail plus every violation with its severity.
"""

from chuk_mcp_musicgen.validation.result import ValidationResult, Violation
from chuk_mcp_musicgen.validation.rules import (
    BarlineRule,
    ChordInKeyRule,
    ChordSymbolRule,
    FragmentBoundsRule,
    MelodicLeapRule,
    NonEmptyRule,
    ParallelPerfectsRule,
    RhythmGridRule,
    ScaleMembershipRule,
    TheoryRule,
    VoiceRangeRule,
)
from chuk_mcp_musicgen.validation.validator import (
    TheoryValidator,
    build_validator,
    validate_fragment,
)

__all__ = [
    "Violation",
    "ValidationResult",
    "TheoryRule",
    "TheoryValidator",
    "build_validator",
    "validate_fragment",
    "NonEmptyRule",
    "FragmentBoundsRule",
    "BarlineRule",
    "VoiceRangeRule",
    "ScaleMembershipRule",
    "ChordSymbolRule",
    "ChordInKeyRule",
    "ParallelPerfectsRule",
    "MelodicLeapRule",
    "RhythmGridRule",
]
