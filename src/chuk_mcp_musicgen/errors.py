"""
Error taxonomy for the generation pipeline.

Provider errors are transient and retried by the orchestrator. Only
GenerationFailed (and CacheProductionFailed around it) reaches callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chuk_mcp_musicgen.validation.result import ValidationResult, Violation


class MusicGenError(Exception):
    """Base class for all pipeline errors."""


class ProviderError(MusicGenError):
    """Transient transport failure talking to a generative backend."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderTimeout(ProviderError):
    """The provider did not answer within the bounded wait."""

    def __init__(self, timeout: float, provider: str | None = None) -> None:
        super().__init__(f"Provider timed out after {timeout:.1f}s", provider)
        self.timeout = timeout


class ProviderMalformedOutput(ProviderError):
    """Raw output could not be parsed into a MusicFragment at all."""

    def __init__(self, message: str, raw_text: str | None = None, provider: str | None = None):
        super().__init__(message, provider)
        self.raw_text = raw_text


class TheoryViolation(MusicGenError):
    """A parsed fragment failed one or more error-severity theory rules."""

    def __init__(self, result: ValidationResult) -> None:
        codes = ", ".join(v.rule_id for v in result.errors)
        super().__init__(f"Fragment failed theory validation: {codes}")
        self.result = result


class GenerationFailed(MusicGenError):
    """Retry budget exhausted without producing a valid fragment. Terminal."""

    def __init__(
        self,
        attempts: int,
        violations: tuple[Violation, ...] = (),
        last_error: BaseException | None = None,
    ) -> None:
        detail = ""
        if violations:
            detail = "; last violations: " + ", ".join(v.rule_id for v in violations)
        elif last_error is not None:
            detail = f"; last error: {last_error}"
        super().__init__(f"Generation failed after {attempts} attempts{detail}")
        self.attempts = attempts
        self.violations = violations
        self.last_error = last_error


class CacheProductionFailed(MusicGenError):
    """The single in-flight producer for a fingerprint failed.

    Every attached waiter receives an instance carrying the same cause.
    """

    def __init__(self, fingerprint: str, cause: BaseException) -> None:
        super().__init__(f"Production failed for {fingerprint[:12]}: {cause}")
        self.fingerprint = fingerprint
        self.cause = cause
