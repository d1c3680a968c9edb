"""
Tests for MCP tools.

Tests the MCP tool implementations for generation, lookup, re-timing,
validation, MIDI export and playback.
"""

import asyncio
import json
from pathlib import Path

import pytest
from mido import MidiFile

from chuk_mcp_musicgen.generation import GenerationOrchestrator
from chuk_mcp_musicgen.playback import RecordingSink
from chuk_mcp_musicgen.tools import register_generation_tools, register_playback_tools


# Mock MCP server for testing tools
class MockMCPServer:
    """Mock MCP server that just stores registered tools."""

    def __init__(self, name: str):
        self.name = name
        self.tools: dict = {}

    def tool(self, func):
        """Decorator to register a tool."""
        self.tools[func.__name__] = func
        return func


@pytest.fixture
def orchestrator(scripted) -> GenerationOrchestrator:
    return GenerationOrchestrator(scripted(delay=0.01))


@pytest.fixture
def generation_tools(orchestrator: GenerationOrchestrator, temp_dir: Path) -> dict:
    return register_generation_tools(MockMCPServer("test"), orchestrator, temp_dir)


@pytest.fixture
def sinks() -> list[RecordingSink]:
    """Every sink a playback session created."""
    return []


@pytest.fixture
def playback_tools(orchestrator: GenerationOrchestrator, sinks: list[RecordingSink]) -> dict:
    def factory() -> RecordingSink:
        sink = RecordingSink()
        sinks.append(sink)
        return sink

    return register_playback_tools(MockMCPServer("test"), orchestrator, factory)


async def generate(tools: dict, **kwargs) -> dict:
    kwargs.setdefault("key", "C")
    kwargs.setdefault("length", 2)
    return json.loads(await tools["music_generate"](**kwargs))


class TestRegistration:
    """Tools register under their function names."""

    def test_generation_tool_names(self, orchestrator, temp_dir: Path) -> None:
        """Every generation tool is registered with the server."""
        mcp = MockMCPServer("test")
        tools = register_generation_tools(mcp, orchestrator, temp_dir)
        assert set(tools) == set(mcp.tools) == {
            "music_generate",
            "music_get_content",
            "music_retime",
            "music_validate_notation",
            "music_export_midi",
            "music_cache_stats",
        }

    def test_playback_tool_names(self, orchestrator) -> None:
        """Every playback tool is registered with the server."""
        mcp = MockMCPServer("test")
        register_playback_tools(mcp, orchestrator, RecordingSink)
        assert set(mcp.tools) == {"music_play", "music_pause", "music_stop", "music_seek"}


class TestGenerationTools:
    """Tests for generation tools."""

    @pytest.mark.asyncio
    async def test_generate(self, generation_tools: dict) -> None:
        """Generate content in the outbound API shape."""
        data = await generate(generation_tools)
        assert data["status"] == "success"

        content = data["content"]
        assert content["type"] == "lead_sheet"
        assert content["difficulty"] == "intermediate"
        assert content["tempo"] == 120
        assert content["style"] == "pop"
        assert content["audioTimelineRef"] == f"timeline:{content['id']}@120"
        assert content["musicData"]["schema"] == "notation/v1"
        assert data["summary"]["measures"] == 2
        assert data["summary"]["chords"] == ["C", "G"]
        assert "2 bars" in data["message"]

    @pytest.mark.asyncio
    async def test_generate_records_owner(self, generation_tools: dict, orchestrator) -> None:
        """user_id becomes the content owner."""
        data = await generate(generation_tools, user_id="learner-7")
        assert orchestrator.get_content(data["content"]["id"]).owner_id == "learner-7"

    @pytest.mark.asyncio
    async def test_generate_invalid_key(self, generation_tools: dict) -> None:
        """A key that does not parse is reported as an error."""
        data = await generate(generation_tools, key="H#")
        assert data["status"] == "error"

    @pytest.mark.asyncio
    async def test_generate_invalid_tempo(self, generation_tools: dict) -> None:
        """Tempos outside the supported range are rejected."""
        data = await generate(generation_tools, tempo=400)
        assert data["status"] == "error"

    @pytest.mark.asyncio
    async def test_generate_failure_reports_violations(
        self, scripted, barline_payload, temp_dir: Path
    ) -> None:
        """An exhausted retry budget returns the attempts and violations."""
        orchestrator = GenerationOrchestrator(scripted(barline_payload), max_attempts=2)
        tools = register_generation_tools(MockMCPServer("test"), orchestrator, temp_dir)

        data = await generate(tools)

        assert data["status"] == "error"
        assert data["attempts"] == 2
        assert "BARLINE_CROSSING" in [v["rule_id"] for v in data["violations"]]

    @pytest.mark.asyncio
    async def test_concurrent_generate_shares_content(
        self, generation_tools: dict, orchestrator
    ) -> None:
        """Concurrent identical tool calls return the same content."""
        results = await asyncio.gather(*(generate(generation_tools) for _ in range(5)))
        assert len({r["content"]["id"] for r in results}) == 1
        assert orchestrator.provider.calls == 1

    @pytest.mark.asyncio
    async def test_get_content(self, generation_tools: dict) -> None:
        """Get content by ID, optionally with its timeline."""
        content_id = (await generate(generation_tools))["content"]["id"]

        data = json.loads(await generation_tools["music_get_content"](content_id=content_id))
        assert data["status"] == "success"
        assert data["content"]["id"] == content_id
        assert "timeline" not in data

        data = json.loads(
            await generation_tools["music_get_content"](
                content_id=content_id, include_timeline=True
            )
        )
        assert len(data["timeline"]["events"]) == 22

    @pytest.mark.asyncio
    async def test_get_missing_content(self, generation_tools: dict) -> None:
        """Unknown IDs are reported."""
        data = json.loads(await generation_tools["music_get_content"](content_id="missing"))
        assert data["status"] == "error"
        assert data["message"] == "Content 'missing' not found."

    @pytest.mark.asyncio
    async def test_retime(self, generation_tools: dict) -> None:
        """Re-timing halves the duration at double tempo."""
        content_id = (await generate(generation_tools))["content"]["id"]

        data = json.loads(await generation_tools["music_retime"](content_id=content_id, tempo=240))

        assert data["status"] == "success"
        assert data["audioTimelineRef"] == f"timeline:{content_id}@240"
        assert data["timeline"]["tempo"] == 240
        assert data["timeline"]["duration"] == 2.0

    @pytest.mark.asyncio
    async def test_retime_invalid_tempo(self, generation_tools: dict) -> None:
        """Out-of-range tempos are reported."""
        content_id = (await generate(generation_tools))["content"]["id"]
        data = json.loads(await generation_tools["music_retime"](content_id=content_id, tempo=10))
        assert data["status"] == "error"

    @pytest.mark.asyncio
    async def test_validate_generated_notation(self, generation_tools: dict) -> None:
        """Generated notation passes validation."""
        notation = (await generate(generation_tools))["content"]["notationBlob"]

        data = json.loads(await generation_tools["music_validate_notation"](notation=notation))

        assert data["status"] == "success"
        assert data["validation"]["passed"] is True

    @pytest.mark.asyncio
    async def test_validate_edited_notation(self, generation_tools: dict) -> None:
        """A hand edit that breaks a rule is reported."""
        notation = json.loads((await generate(generation_tools))["content"]["notationBlob"])
        first_note = next(e for e in notation["events"] if e["kind"] == "note")
        first_note["pitch"] = "C7"

        data = json.loads(
            await generation_tools["music_validate_notation"](notation=json.dumps(notation))
        )

        assert data["status"] == "success"
        assert data["validation"]["passed"] is False
        assert data["message"].endswith("errors")

    @pytest.mark.asyncio
    async def test_validate_garbage(self, generation_tools: dict) -> None:
        """Unparseable notation is an error."""
        data = json.loads(await generation_tools["music_validate_notation"](notation="not json"))
        assert data["status"] == "error"

    @pytest.mark.asyncio
    async def test_export_midi(self, generation_tools: dict, temp_dir: Path) -> None:
        """Export writes a loadable MIDI file."""
        content_id = (await generate(generation_tools))["content"]["id"]

        data = json.loads(
            await generation_tools["music_export_midi"](content_id=content_id, output_name="lead")
        )

        assert data["status"] == "success"
        assert data["path"] == str(temp_dir / "lead.mid")
        assert data["events"] == 22
        mid = MidiFile(data["path"])
        assert sum(1 for msg in mid.tracks[0] if msg.type == "note_on") == 11

    @pytest.mark.asyncio
    async def test_export_midi_tempo_override(self, generation_tools: dict, temp_dir: Path) -> None:
        """The export defaults to the content ID as filename and honours a tempo."""
        content_id = (await generate(generation_tools))["content"]["id"]

        data = json.loads(
            await generation_tools["music_export_midi"](content_id=content_id, tempo=90)
        )

        assert data["tempo"] == 90
        assert Path(data["path"]) == temp_dir / f"{content_id}.mid"

    @pytest.mark.asyncio
    async def test_cache_stats(self, generation_tools: dict) -> None:
        """Cache stats reflect generation and repeat requests."""
        await generate(generation_tools)
        await generate(generation_tools)

        data = json.loads(await generation_tools["music_cache_stats"]())

        assert data["status"] == "success"
        assert data["cache"]["size"] == 1
        assert data["cache"]["hits"] >= 1


class TestPlaybackTools:
    """Tests for playback tools."""

    @pytest.mark.asyncio
    async def test_play_pause_stop(
        self, generation_tools: dict, playback_tools: dict, sinks: list
    ) -> None:
        """A session starts, pauses and stops."""
        content_id = (await generate(generation_tools))["content"]["id"]

        data = json.loads(await playback_tools["music_play"](content_id=content_id, tempo=240))
        assert data["status"] == "success"
        assert data["session"]["state"] == "playing"
        assert data["session"]["tempo"] == 240
        assert data["session"]["events"] == 22

        await asyncio.sleep(0.05)
        data = json.loads(await playback_tools["music_pause"](content_id=content_id))
        assert data["session"]["state"] == "paused"
        assert len(sinks) == 1
        assert len(sinks[0]) > 0

        data = json.loads(await playback_tools["music_stop"](content_id=content_id))
        assert data["session"]["state"] == "stopped"

        data = json.loads(await playback_tools["music_pause"](content_id=content_id))
        assert data["status"] == "error"

    @pytest.mark.asyncio
    async def test_resume_reuses_session(
        self, generation_tools: dict, playback_tools: dict, sinks: list
    ) -> None:
        """Playing a paused session resumes it instead of starting over."""
        content_id = (await generate(generation_tools))["content"]["id"]
        await playback_tools["music_play"](content_id=content_id)
        await playback_tools["music_pause"](content_id=content_id)

        data = json.loads(await playback_tools["music_play"](content_id=content_id, loop=True))

        assert data["session"]["state"] == "playing"
        assert data["session"]["loop"] is True
        assert len(sinks) == 1
        await playback_tools["music_stop"](content_id=content_id)

    @pytest.mark.asyncio
    async def test_seek(self, generation_tools: dict, playback_tools: dict) -> None:
        """Seeking a paused session moves its offset."""
        content_id = (await generate(generation_tools))["content"]["id"]
        await playback_tools["music_play"](content_id=content_id)
        await playback_tools["music_pause"](content_id=content_id)

        data = json.loads(await playback_tools["music_seek"](content_id=content_id, offset=2.0))

        assert data["status"] == "success"
        assert data["session"]["elapsed"] == 2.0
        assert data["session"]["state"] == "paused"
        await playback_tools["music_stop"](content_id=content_id)

    @pytest.mark.asyncio
    async def test_start_at(self, generation_tools: dict, playback_tools: dict) -> None:
        """A new session can start part-way through."""
        content_id = (await generate(generation_tools))["content"]["id"]

        data = json.loads(
            await playback_tools["music_play"](content_id=content_id, start_at=2.0)
        )

        assert data["session"]["position"] > 0
        assert data["session"]["elapsed"] >= 2.0
        await playback_tools["music_stop"](content_id=content_id)

    @pytest.mark.asyncio
    async def test_play_missing_content(self, playback_tools: dict) -> None:
        """Unknown content cannot be played."""
        data = json.loads(await playback_tools["music_play"](content_id="missing"))
        assert data["status"] == "error"
        assert "not found" in data["message"]

    @pytest.mark.asyncio
    async def test_no_session(self, playback_tools: dict) -> None:
        """Transport tools need a session."""
        for name, kwargs in (
            ("music_pause", {}),
            ("music_stop", {}),
            ("music_seek", {"offset": 1.0}),
        ):
            data = json.loads(await playback_tools[name](content_id="missing", **kwargs))
            assert data["status"] == "error"
            assert "No playback session" in data["message"]
