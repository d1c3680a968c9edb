"""
Tests for the generation orchestrator.

Tests cover:
- Retry budget
- Accept / reject / retry-exhausted flow and emitted events
- Single flight for identical concurrent requests
- Timeouts, malformed output and caching
- Re-timing and lookup
"""

import asyncio

import pytest

from chuk_mcp_musicgen.constants import GenerationState
from chuk_mcp_musicgen.errors import (
    GenerationFailed,
    ProviderError,
    ProviderMalformedOutput,
    ProviderTimeout,
    TheoryViolation,
)
from chuk_mcp_musicgen.generation import (
    ContentCache,
    GenerationEvent,
    GenerationOrchestrator,
    RetryBudget,
)
from chuk_mcp_musicgen.models import UserContext
from chuk_mcp_musicgen.providers import FallbackProvider


def states(events: list[GenerationEvent]) -> list[GenerationState]:
    return [e.state for e in events]


@pytest.fixture
def recorded():
    """Collect emitted events."""
    return []


class TestRetryBudget:
    """Tests for RetryBudget."""

    def test_consume(self) -> None:
        """Consuming returns a new budget and leaves the old one alone."""
        budget = RetryBudget(2)
        used = budget.consume()
        assert (budget.used, used.used) == (0, 1)
        assert used.remaining == 1
        assert used.consume().exhausted

    def test_exhausted(self) -> None:
        """An exhausted budget cannot be consumed."""
        with pytest.raises(ValueError):
            RetryBudget(1, 1).consume()

    def test_positive(self) -> None:
        """At least one attempt is required."""
        with pytest.raises(ValueError):
            RetryBudget(0)


class TestGenerate:
    """Tests for the happy path and retries."""

    @pytest.mark.asyncio
    async def test_accepts_valid_output(self, make_request, scripted, recorded) -> None:
        """Valid output becomes content on the first attempt."""
        provider = scripted()
        orchestrator = GenerationOrchestrator(provider)
        orchestrator.add_listener(recorded.append)

        content = await orchestrator.generate(make_request())

        assert content.attempts == 1
        assert content.provider == "scripted"
        assert content.timeline.tempo == 120
        assert content.fragment.measures == 2
        assert '"schema":"notation/v1"' in content.notation
        assert states(recorded) == [
            GenerationState.PENDING,
            GenerationState.GENERATING,
            GenerationState.VALIDATING,
            GenerationState.ACCEPTED,
        ]

    @pytest.mark.asyncio
    async def test_theory_failure_exhausts_budget(
        self, make_request, scripted, barline_payload, recorded
    ) -> None:
        """Output that always breaks a rule fails after every attempt, uncached."""
        provider = scripted(barline_payload)
        cache = ContentCache()
        orchestrator = GenerationOrchestrator(provider, cache, max_attempts=3)
        orchestrator.add_listener(recorded.append)
        request = make_request(difficulty="beginner", style="swing", length=8)

        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.generate(request)

        error = exc_info.value
        assert error.attempts == 3
        assert "BARLINE_CROSSING" in [v.rule_id for v in error.violations]
        assert isinstance(error.last_error, TheoryViolation)
        assert provider.calls == 3
        assert request.fingerprint() not in cache
        assert states(recorded).count(GenerationState.REJECTED) == 3
        assert states(recorded)[-1] == GenerationState.RETRY_EXHAUSTED

    @pytest.mark.asyncio
    async def test_retry_then_accept(
        self, make_request, scripted, barline_payload, valid_payload
    ) -> None:
        """A rejected attempt is retried and the next valid one accepted."""
        provider = scripted(barline_payload, valid_payload)
        content = await GenerationOrchestrator(provider).generate(make_request())
        assert content.attempts == 2
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_malformed_output_retried(self, make_request, scripted, valid_payload) -> None:
        """Unparseable output counts as a failed attempt."""
        provider = scripted("Sure! Here is your melody:", valid_payload)
        content = await GenerationOrchestrator(provider).generate(make_request())
        assert content.attempts == 2

    @pytest.mark.asyncio
    async def test_timeout_counts_as_attempt(self, make_request, scripted) -> None:
        """A provider that never answers in time exhausts the budget."""
        provider = scripted(delay=1.0)
        orchestrator = GenerationOrchestrator(provider, max_attempts=2, timeout=0.05)
        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.generate(make_request())
        assert isinstance(exc_info.value.last_error, ProviderTimeout)
        assert exc_info.value.violations == ()
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_warnings_recorded(self, make_request, scripted, valid_payload) -> None:
        """Non-blocking findings travel with the accepted content."""
        valid_payload["notes"][1]["pitch"] = "F#4"
        content = await GenerationOrchestrator(scripted(valid_payload)).generate(make_request())
        assert len(content.warnings) == 1
        assert "SCALE_MEMBERSHIP" in content.warnings[0]

    @pytest.mark.asyncio
    async def test_owner_recorded(self, make_request, scripted) -> None:
        """The requesting user owns the content."""
        user = UserContext(user_id="u-42", display_name="Sam")
        content = await GenerationOrchestrator(scripted()).generate(make_request(), user)
        assert content.owner_id == "u-42"

    @pytest.mark.asyncio
    async def test_invalid_playback_parameters(self, make_request, scripted) -> None:
        """Bad swing settings are rejected before the provider is called."""
        provider = scripted()
        with pytest.raises(ValueError):
            await GenerationOrchestrator(provider).generate(
                make_request(parameters={"swing_ratio": 0.9})
            )
        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_listener_errors_ignored(self, make_request, scripted) -> None:
        """A failing listener does not break generation."""

        def broken(event: GenerationEvent) -> None:
            raise RuntimeError("listener bug")

        orchestrator = GenerationOrchestrator(scripted())
        orchestrator.add_listener(broken)
        assert (await orchestrator.generate(make_request())).attempts == 1
        orchestrator.remove_listener(broken)

    def test_invalid_attempts(self, scripted) -> None:
        """The retry budget must allow at least one attempt."""
        with pytest.raises(ValueError):
            GenerationOrchestrator(scripted(), max_attempts=0)

    @pytest.mark.asyncio
    async def test_unplayable_chord_retried(self, make_request, scripted, valid_payload) -> None:
        """A chord voiced past MIDI 127 is malformed output and gets another attempt."""
        high_chord = {
            "chords": [{"root": "A", "quality": "major7", "octave": 8, "start": 0, "duration": 4}]
        }
        provider = scripted(high_chord, valid_payload)
        content = await GenerationOrchestrator(provider).generate(make_request())
        assert content.attempts == 2
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_unplayable_chord_exhausts_budget(self, make_request, scripted) -> None:
        """Output that always voices out of range fails after every attempt."""
        high_chord = {
            "chords": [{"root": "A", "quality": "major7", "octave": 8, "start": 0, "duration": 4}]
        }
        provider = scripted(high_chord)
        orchestrator = GenerationOrchestrator(provider, max_attempts=3)
        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.generate(make_request())
        assert isinstance(exc_info.value.last_error, ProviderMalformedOutput)
        assert provider.calls == 3

    @pytest.mark.asyncio
    async def test_provider_error_clears_violations(
        self, make_request, scripted, barline_payload
    ) -> None:
        """When the last attempt fails in the provider, that error is what gets reported."""
        provider = scripted(barline_payload, ProviderError("service down", "scripted"))
        orchestrator = GenerationOrchestrator(provider, max_attempts=2)
        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.generate(make_request())

        error = exc_info.value
        assert error.violations == ()
        assert isinstance(error.last_error, ProviderError)
        assert "service down" in str(error)

    @pytest.mark.asyncio
    async def test_slow_primary_falls_back_within_timeout(self, make_request, scripted) -> None:
        """A fallback answers before the overall timeout when the primary hangs."""
        primary = scripted(name="primary", delay=1.0)
        secondary = scripted(name="secondary")
        provider = FallbackProvider(primary, secondary, primary_timeout=0.1)
        orchestrator = GenerationOrchestrator(provider, max_attempts=1, timeout=0.5)

        content = await orchestrator.generate(make_request())
        assert content.attempts == 1
        assert content.provider == "primary+secondary"
        assert (primary.calls, secondary.calls) == (1, 1)


class TestSingleFlight:
    """Identical requests share work; results are cached."""

    @pytest.mark.asyncio
    async def test_concurrent_identical_requests(self, make_request, scripted) -> None:
        """N concurrent identical requests make one provider call."""
        provider = scripted(delay=0.02)
        orchestrator = GenerationOrchestrator(provider)
        request = make_request()

        results = await asyncio.gather(*(orchestrator.generate(request) for _ in range(10)))

        assert provider.calls == 1
        assert len({content.id for content in results}) == 1

    @pytest.mark.asyncio
    async def test_concurrent_failure_shared(self, make_request, scripted, barline_payload) -> None:
        """Every concurrent caller sees the same terminal failure."""
        provider = scripted(barline_payload, delay=0.01)
        orchestrator = GenerationOrchestrator(provider, max_attempts=2)
        request = make_request(difficulty="beginner")

        results = await asyncio.gather(
            *(orchestrator.generate(request) for _ in range(4)), return_exceptions=True
        )

        assert all(isinstance(r, GenerationFailed) for r in results)
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_cached_on_repeat(self, make_request, scripted, recorded) -> None:
        """A repeated request is served from the cache."""
        provider = scripted()
        orchestrator = GenerationOrchestrator(provider)
        first = await orchestrator.generate(make_request())
        orchestrator.add_listener(recorded.append)
        second = await orchestrator.generate(make_request())

        assert second is first
        assert provider.calls == 1
        assert recorded[-1].state == GenerationState.ACCEPTED
        assert recorded[-1].cached

    @pytest.mark.asyncio
    async def test_distinct_requests(self, make_request, scripted) -> None:
        """Different requests are generated separately."""
        provider = scripted()
        orchestrator = GenerationOrchestrator(provider)
        a = await orchestrator.generate(make_request(tempo=100))
        b = await orchestrator.generate(make_request(tempo=110))
        assert a.id != b.id
        assert provider.calls == 2


class TestRetimeAndLookup:
    """Tests for retime and get_content."""

    @pytest.mark.asyncio
    async def test_get_content(self, make_request, scripted) -> None:
        """Content is found by id after generation."""
        orchestrator = GenerationOrchestrator(scripted())
        content = await orchestrator.generate(make_request())
        assert orchestrator.get_content(content.id) is content
        assert orchestrator.get_content("missing") is None

    @pytest.mark.asyncio
    async def test_retime(self, make_request, scripted) -> None:
        """Re-timing derives a new timeline without calling the provider."""
        provider = scripted()
        orchestrator = GenerationOrchestrator(provider)
        content = await orchestrator.generate(make_request(tempo=120))

        faster = orchestrator.retime(content, 240)

        assert faster.tempo == 240
        assert faster.duration == content.timeline.duration / 2
        assert content.timeline.tempo == 120
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_retime_keeps_swing(self, make_request, scripted) -> None:
        """Options chosen at generation survive re-timing."""
        orchestrator = GenerationOrchestrator(scripted())
        content = await orchestrator.generate(make_request(parameters={"swing_ratio": "2/3"}))
        swing = content.timeline.options.swing_ratio
        assert swing is not None
        assert orchestrator.retime(content, 90).options.swing_ratio == swing

    @pytest.mark.asyncio
    async def test_retime_invalid_tempo(self, make_request, scripted) -> None:
        """Tempos outside the supported range are rejected."""
        orchestrator = GenerationOrchestrator(scripted())
        content = await orchestrator.generate(make_request())
        with pytest.raises(ValueError, match="Invalid tempo"):
            orchestrator.retime(content, 500)
