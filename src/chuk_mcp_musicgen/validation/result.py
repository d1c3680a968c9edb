"""
Validation results - Violation and ValidationResult.

Both are frozen: a result is never mutated after the validator returns it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from chuk_mcp_musicgen.constants import Severity


@dataclass(frozen=True)
class Violation:
    """A single rule finding."""

    rule_id: str
    severity: Severity
    message: str
    location: str | None = None

    @property
    def is_blocking(self) -> bool:
        return self.severity.rank >= Severity.ERROR.rank

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "message": self.message,
            "location": self.location,
        }

    def __str__(self) -> str:
        prefix = f"[{self.severity.value.upper()}]"
        location = f" at {self.location}" if self.location else ""
        return f"{prefix} {self.rule_id}: {self.message}{location}"


@dataclass(frozen=True)
class ValidationResult:
    """Pass/fail plus every violation, in rule order."""

    passed: bool
    violations: tuple[Violation, ...] = ()

    @classmethod
    def from_violations(cls, violations: tuple[Violation, ...]) -> ValidationResult:
        return cls(
            passed=not any(v.is_blocking for v in violations),
            violations=violations,
        )

    @property
    def errors(self) -> tuple[Violation, ...]:
        return tuple(v for v in self.violations if v.is_blocking)

    @property
    def warnings(self) -> tuple[Violation, ...]:
        return tuple(v for v in self.violations if v.severity == Severity.WARNING)

    def rule_ids(self) -> list[str]:
        return [v.rule_id for v in self.violations]

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "violations": [v.to_dict() for v in self.violations],
        }

    def __bool__(self) -> bool:
        return self.passed

    def __str__(self) -> str:
        if not self.violations:
            return "Validation passed: no issues found"
        return "\n".join(str(v) for v in self.violations)
