"""
Pytest configuration and shared fixtures.
"""

import asyncio
import copy
import json
import tempfile
from fractions import Fraction
from pathlib import Path
from typing import Any

import pytest

from chuk_mcp_musicgen.compiler import to_notation, to_timeline
from chuk_mcp_musicgen.core import Key, Pitch
from chuk_mcp_musicgen.core.chord import MAJOR
from chuk_mcp_musicgen.core.pitch import PitchClass
from chuk_mcp_musicgen.models import Chord, GenerationRequest, MusicFragment, Note
from chuk_mcp_musicgen.models.content import GeneratedContent
from chuk_mcp_musicgen.providers import RawGenerationOutput

# A valid two-bar C major lead sheet as a provider would return it
VALID_PAYLOAD: dict[str, Any] = {
    "time_signature": "4/4",
    "chords": [
        {"symbol": "C", "start": 0, "duration": 4},
        {"symbol": "G", "start": 4, "duration": 4},
    ],
    "notes": [
        {"pitch": "E4", "start": 0, "duration": 1},
        {"pitch": "D4", "start": 1, "duration": 1},
        {"pitch": "C4", "start": 2, "duration": 2},
        {"pitch": "D4", "start": 4, "duration": 2},
        {"pitch": "G4", "start": 6, "duration": 2},
    ],
}

# Same shape, but the second note rings across the first barline untied
BARLINE_PAYLOAD: dict[str, Any] = {
    "chords": [
        {"symbol": "C", "start": 0, "duration": 4},
        {"symbol": "G", "start": 4, "duration": 4},
    ],
    "notes": [
        {"pitch": "E4", "start": 0, "duration": 3},
        {"pitch": "D4", "start": 3, "duration": 2},
        {"pitch": "G4", "start": 5, "duration": 3},
    ],
}


class ScriptedProvider:
    """
    Provider that replays a script of outputs.

    Each entry is a payload dict (serialized to JSON), a raw string, or an
    exception instance to raise. The last entry repeats once the script runs
    out. ``gate`` (if set) is awaited before answering, so tests can hold
    a production in flight.
    """

    def __init__(self, *script: Any, name: str = "scripted", delay: float = 0.0) -> None:
        self.script = list(script) or [VALID_PAYLOAD]
        self.name = name
        self.delay = delay
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def generate(self, request: GenerationRequest) -> RawGenerationOutput:
        entry = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(entry, BaseException):
            raise entry
        text = entry if isinstance(entry, str) else json.dumps(entry)
        return RawGenerationOutput(text=text, provider=self.name, request=request)


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_midi_path(temp_dir: Path) -> Path:
    """Path for a temporary MIDI file."""
    return temp_dir / "test.mid"


@pytest.fixture
def c_major() -> Key:
    return Key.parse("C")


@pytest.fixture
def valid_fragment(c_major: Key) -> MusicFragment:
    """Two bars of C major that pass every rule at every difficulty."""
    beats = Fraction

    def note(name: str, start: int, duration: int) -> Note:
        return Note(Pitch.parse(name), beats(start), beats(duration))

    return MusicFragment(
        events=(
            Chord.build(PitchClass.C, MAJOR, beats(0), beats(4)),
            Chord.build(PitchClass.G, MAJOR, beats(4), beats(4)),
            note("E4", 0, 1),
            note("D4", 1, 1),
            note("C4", 2, 2),
            note("D4", 4, 2),
            note("G4", 6, 2),
        ),
        key=c_major,
        tempo=120,
        measures=2,
    )


@pytest.fixture
def make_request():
    """Factory for GenerationRequests with sensible defaults."""

    def _make(**overrides: Any) -> GenerationRequest:
        fields: dict[str, Any] = {
            "type": "lead_sheet",
            "key": "C",
            "difficulty": "intermediate",
            "style": "pop",
            "tempo": 120,
            "length": 2,
        }
        fields.update(overrides)
        return GenerationRequest(**fields)

    return _make


@pytest.fixture
def valid_payload() -> dict[str, Any]:
    return copy.deepcopy(VALID_PAYLOAD)


@pytest.fixture
def barline_payload() -> dict[str, Any]:
    return copy.deepcopy(BARLINE_PAYLOAD)


@pytest.fixture
def scripted():
    """Factory for ScriptedProvider."""
    return ScriptedProvider


@pytest.fixture
def make_content(valid_fragment: MusicFragment, make_request):
    """Factory for GeneratedContent wrapping the valid fragment."""

    def _make(**overrides: Any) -> GeneratedContent:
        request = make_request(**overrides)
        return GeneratedContent(
            fingerprint=request.fingerprint(),
            fragment=valid_fragment,
            notation=to_notation(valid_fragment),
            timeline=to_timeline(valid_fragment, request.tempo),
            request=request,
        )

    return _make
