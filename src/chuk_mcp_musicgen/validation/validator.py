"""
Theory validator - runs an ordered set of rules over a fragment.

The validator holds no state beyond its rule tuple, so a single instance can
be shared between concurrent generations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from chuk_mcp_musicgen.constants import (
    MAX_LEAP,
    MELODY_RANGE,
    RHYTHM_GRID,
    Difficulty,
    Severity,
)
from chuk_mcp_musicgen.models.fragment import MusicFragment
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

logger = logging.getLogger(__name__)


class TheoryValidator:
    """Applies rules in order and collects every violation."""

    def __init__(self, rules: Iterable[TheoryRule]) -> None:
        self._rules: tuple[TheoryRule, ...] = tuple(rules)

    @property
    def rules(self) -> tuple[TheoryRule, ...]:
        return self._rules

    def with_rule(self, rule: TheoryRule) -> TheoryValidator:
        """Return a new validator with an extra rule appended."""
        return TheoryValidator((*self._rules, rule))

    def without_rule(self, rule_id: str) -> TheoryValidator:
        """Return a new validator with every rule of this id removed."""
        return TheoryValidator(r for r in self._rules if r.rule_id != rule_id)

    def validate(self, fragment: MusicFragment) -> ValidationResult:
        violations: list[Violation] = []
        for rule in self._rules:
            violations.extend(rule.check(fragment))
        result = ValidationResult.from_violations(tuple(violations))
        logger.debug(
            "Validated fragment in %s: %d errors, %d warnings",
            fragment.key,
            len(result.errors),
            len(result.warnings),
        )
        return result


def build_validator(difficulty: Difficulty = Difficulty.INTERMEDIATE) -> TheoryValidator:
    """Standard rule set with thresholds for a difficulty tier."""
    leap_severity = Severity.ERROR if difficulty == Difficulty.BEGINNER else Severity.WARNING
    return TheoryValidator(
        [
            NonEmptyRule(),
            FragmentBoundsRule(),
            BarlineRule(),
            VoiceRangeRule(MELODY_RANGE[difficulty]),
            ScaleMembershipRule(),
            ChordSymbolRule(),
            ChordInKeyRule(),
            ParallelPerfectsRule(),
            MelodicLeapRule(MAX_LEAP[difficulty], leap_severity),
            RhythmGridRule(RHYTHM_GRID[difficulty]),
        ]
    )


def validate_fragment(
    fragment: MusicFragment, difficulty: Difficulty = Difficulty.INTERMEDIATE
) -> ValidationResult:
    """Convenience wrapper: validate with the standard rules for a tier."""
    return build_validator(difficulty).validate(fragment)
