"""
Generation orchestrator - drives one request to validated content.

Per request: Pending -> Generating -> Validating -> Accepted, with Rejected
attempts looping back to Generating until the retry budget is spent
(RetryExhausted). Every transition is logged and emitted to listeners.

Only the terminal outcome reaches the caller: GeneratedContent or
GenerationFailed. Provider errors, malformed output and theory violations
are retried internally, and nothing partial is ever cached.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from chuk_mcp_musicgen.compiler.notation import to_notation
from chuk_mcp_musicgen.compiler.timeline import PlaybackTimeline, TimelineOptions, to_timeline
from chuk_mcp_musicgen.constants import TEMPO_RANGE, Difficulty, ErrorMessages, GenerationState
from chuk_mcp_musicgen.errors import (
    CacheProductionFailed,
    GenerationFailed,
    ProviderError,
    ProviderTimeout,
    TheoryViolation,
)
from chuk_mcp_musicgen.generation.cache import ContentCache
from chuk_mcp_musicgen.models.content import GeneratedContent
from chuk_mcp_musicgen.models.fragment import MusicFragment
from chuk_mcp_musicgen.models.request import GenerationRequest, UserContext
from chuk_mcp_musicgen.providers.base import GenerationProvider
from chuk_mcp_musicgen.providers.parser import parse_raw_output
from chuk_mcp_musicgen.validation.result import ValidationResult, Violation
from chuk_mcp_musicgen.validation.validator import TheoryValidator, build_validator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryBudget:
    """Attempts allowed for one request. Consuming returns a new budget."""

    max_attempts: int = 3
    used: int = 0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    @property
    def remaining(self) -> int:
        return self.max_attempts - self.used

    @property
    def exhausted(self) -> bool:
        return self.used >= self.max_attempts

    def consume(self) -> RetryBudget:
        if self.exhausted:
            raise ValueError("Retry budget exhausted")
        return RetryBudget(self.max_attempts, self.used + 1)


@dataclass(frozen=True)
class GenerationEvent:
    """One state transition, as seen by telemetry listeners."""

    fingerprint: str
    state: GenerationState
    attempt: int = 0
    detail: str | None = None
    cached: bool = False
    timestamp: float = field(default_factory=time.time)


GenerationListener = Callable[[GenerationEvent], None]


class GenerationOrchestrator:
    """
    Turns GenerationRequests into validated GeneratedContent.

    Args:
        provider: Backend producing raw output
        cache: Shared content cache (a private one is created if omitted)
        max_attempts: Retry budget per request
        timeout: Bounded wait for each provider call, in seconds
        validator_factory: Builds the rule set for a difficulty tier
    """

    def __init__(
        self,
        provider: GenerationProvider,
        cache: ContentCache | None = None,
        max_attempts: int = 3,
        timeout: float = 30.0,
        validator_factory: Callable[[Difficulty], TheoryValidator] = build_validator,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.provider = provider
        self.cache = cache if cache is not None else ContentCache()
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._validator_factory = validator_factory
        self._listeners: list[GenerationListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: GenerationListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: GenerationListener) -> None:
        self._listeners.remove(listener)

    def _emit(self, event: GenerationEvent) -> None:
        logger.debug(
            f"[{event.fingerprint[:12]}] {event.state.value}"
            + (f" (attempt {event.attempt})" if event.attempt else "")
            + (f": {event.detail}" if event.detail else "")
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Generation listener failed on {event.state.value}")

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self, request: GenerationRequest, user: UserContext | None = None
    ) -> GeneratedContent:
        """
        Produce validated content for a request.

        Identical concurrent requests share one production; completed content
        is served from the cache without calling the provider.

        Raises:
            GenerationFailed: The retry budget ran out
            ValueError: The request's playback parameters are invalid
        """
        options = TimelineOptions.from_parameters(request.parameters)
        fingerprint = request.fingerprint()
        who = (user.display_name or user.user_id) if user else "anonymous"
        logger.info(
            f"Generation requested by {who}: {request.content_type.value} in {request.key}, "
            f"{request.difficulty.value}, {request.style} [{fingerprint[:12]}]"
        )
        self._emit(GenerationEvent(fingerprint, GenerationState.PENDING))

        cached = self.cache.get(fingerprint)
        if cached is not None:
            self._emit(GenerationEvent(fingerprint, GenerationState.ACCEPTED, cached=True))
            return cached

        try:
            return await self.cache.get_or_create(
                fingerprint, lambda: self._produce(request, fingerprint, options, user)
            )
        except CacheProductionFailed as e:
            if isinstance(e.cause, GenerationFailed):
                raise e.cause from None
            raise

    async def _produce(
        self,
        request: GenerationRequest,
        fingerprint: str,
        options: TimelineOptions,
        user: UserContext | None,
    ) -> GeneratedContent:
        validator = self._validator_factory(request.difficulty)
        budget = RetryBudget(self.max_attempts)
        last_violations: tuple[Violation, ...] = ()
        last_error: BaseException | None = None

        while not budget.exhausted:
            budget = budget.consume()
            attempt = budget.used
            self._emit(GenerationEvent(fingerprint, GenerationState.GENERATING, attempt))

            try:
                fragment, result = await self._attempt(request, fingerprint, validator)
            except ProviderError as e:
                last_error = e
                last_violations = ()
                logger.warning(f"Attempt {attempt}/{budget.max_attempts} failed: {e}")
                self._emit(
                    GenerationEvent(fingerprint, GenerationState.REJECTED, attempt, str(e))
                )
                continue

            if not result.passed:
                last_violations = result.errors
                last_error = TheoryViolation(result)
                logger.warning(
                    f"Attempt {attempt}/{budget.max_attempts} rejected: "
                    f"{', '.join(v.rule_id for v in result.errors)}"
                )
                self._emit(
                    GenerationEvent(fingerprint, GenerationState.REJECTED, attempt, str(last_error))
                )
                continue

            content = GeneratedContent(
                fingerprint=fingerprint,
                fragment=fragment,
                notation=to_notation(fragment),
                timeline=to_timeline(fragment, request.tempo, options),
                request=request,
                owner_id=user.user_id if user else None,
                provider=self.provider.name,
                attempts=attempt,
                warnings=tuple(str(v) for v in result.warnings),
            )
            self._emit(GenerationEvent(fingerprint, GenerationState.ACCEPTED, attempt))
            logger.info(f"Accepted content {content.id} after {attempt} attempt(s)")
            return content

        self._emit(
            GenerationEvent(fingerprint, GenerationState.RETRY_EXHAUSTED, budget.used)
        )
        logger.error(ErrorMessages.GENERATION_FAILED.format(attempts=budget.used))
        raise GenerationFailed(budget.used, last_violations, last_error)

    async def _attempt(
        self, request: GenerationRequest, fingerprint: str, validator: TheoryValidator
    ) -> tuple[MusicFragment, ValidationResult]:
        """One provider call, parse and validation. Provider failures raise."""
        try:
            raw = await asyncio.wait_for(self.provider.generate(request), self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(self.timeout, self.provider.name) from e

        self._emit(GenerationEvent(fingerprint, GenerationState.VALIDATING))
        fragment = parse_raw_output(raw)
        return fragment, validator.validate(fragment)

    # ------------------------------------------------------------------
    # Lookup and re-timing
    # ------------------------------------------------------------------

    def get_content(self, content_id: str) -> GeneratedContent | None:
        return self.cache.get_by_id(content_id)

    def retime(self, content: GeneratedContent, tempo: int) -> PlaybackTimeline:
        """
        Derive a timeline at a new tempo. No generation or validation runs.

        Raises:
            ValueError: If the tempo is outside the supported range
        """
        low, high = TEMPO_RANGE
        if not low <= tempo <= high:
            raise ValueError(ErrorMessages.INVALID_TEMPO.format(tempo=tempo))
        return to_timeline(content.fragment, tempo, content.timeline.options)
