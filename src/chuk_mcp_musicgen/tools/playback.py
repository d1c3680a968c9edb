"""
Playback tools - MCP tools driving the audio scheduler.

One playback session per content ID. Without a configured MIDI port the
sessions play into a RecordingSink, which is enough to preview timing.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from chuk_mcp_musicgen.constants import ErrorMessages
from chuk_mcp_musicgen.generation import GenerationOrchestrator
from chuk_mcp_musicgen.playback import AudioScheduler, SynthesisSink

if TYPE_CHECKING:
    from chuk_mcp_server import ChukMCPServer

logger = logging.getLogger(__name__)


def register_playback_tools(
    mcp: ChukMCPServer,
    orchestrator: GenerationOrchestrator,
    sink_factory: Callable[[], SynthesisSink],
    loop_default: bool = False,
) -> dict[str, Any]:
    """
    Register playback tools with the MCP server.

    Args:
        mcp: The MCP server instance
        orchestrator: Source of generated content
        sink_factory: Creates the sink for a new session
        loop_default: Whether new sessions loop unless told otherwise

    Returns:
        Dictionary of registered tool functions
    """
    tools: dict[str, Any] = {}
    sessions: dict[str, AudioScheduler] = {}

    def _session_info(content_id: str, scheduler: AudioScheduler) -> dict[str, Any]:
        return {
            "content_id": content_id,
            "state": scheduler.state.value,
            "tempo": scheduler.timeline.tempo,
            "elapsed": round(scheduler.elapsed, 3),
            "duration": round(scheduler.timeline.duration, 3),
            "position": scheduler.position,
            "events": len(scheduler.timeline.events),
            "dispatched": scheduler.dispatched,
            "loop": scheduler.loop,
        }

    def _no_session(content_id: str) -> str:
        return json.dumps(
            {"status": "error", "message": f"No playback session for content '{content_id}'"}
        )

    @mcp.tool  # type: ignore[arg-type]
    async def music_play(
        content_id: str,
        tempo: int | None = None,
        loop: bool | None = None,
        start_at: float = 0.0,
    ) -> str:
        """
        Start (or resume) playback of generated content.

        Args:
            content_id: Content ID
            tempo: Optional tempo override; starts a fresh session
            loop: Loop when the end is reached (default from settings)
            start_at: Offset in seconds to start from (new sessions only)

        Returns:
            JSON string with the session state
        """
        try:
            scheduler = sessions.get(content_id)
            if scheduler is None or tempo is not None:
                content = orchestrator.get_content(content_id)
                if content is None:
                    return json.dumps(
                        {
                            "status": "error",
                            "message": ErrorMessages.CONTENT_NOT_FOUND.format(content_id=content_id),
                        }
                    )
                if scheduler is not None:
                    await scheduler.stop()
                timeline = content.timeline if tempo is None else orchestrator.retime(content, tempo)
                scheduler = AudioScheduler(
                    timeline, sink_factory(), loop=loop_default if loop is None else loop
                )
                sessions[content_id] = scheduler
                if start_at:
                    await scheduler.seek(start_at)
            elif loop is not None:
                scheduler.set_loop(loop)

            await scheduler.start()
            return json.dumps({"status": "success", "session": _session_info(content_id, scheduler)})
        except Exception as e:
            logger.exception("Failed to start playback")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_play"] = music_play

    @mcp.tool  # type: ignore[arg-type]
    async def music_pause(content_id: str) -> str:
        """
        Pause playback, keeping the position.

        Args:
            content_id: Content ID

        Returns:
            JSON string with the session state
        """
        try:
            scheduler = sessions.get(content_id)
            if scheduler is None:
                return _no_session(content_id)
            await scheduler.pause()
            return json.dumps({"status": "success", "session": _session_info(content_id, scheduler)})
        except Exception as e:
            logger.exception("Failed to pause playback")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_pause"] = music_pause

    @mcp.tool  # type: ignore[arg-type]
    async def music_stop(content_id: str) -> str:
        """
        Stop playback and close the session.

        Args:
            content_id: Content ID

        Returns:
            JSON string with the final session state
        """
        try:
            scheduler = sessions.pop(content_id, None)
            if scheduler is None:
                return _no_session(content_id)
            await scheduler.stop()
            return json.dumps({"status": "success", "session": _session_info(content_id, scheduler)})
        except Exception as e:
            logger.exception("Failed to stop playback")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_stop"] = music_stop

    @mcp.tool  # type: ignore[arg-type]
    async def music_seek(content_id: str, offset: float) -> str:
        """
        Move playback to an offset in seconds.

        Args:
            content_id: Content ID
            offset: Seconds from the start

        Returns:
            JSON string with the session state
        """
        try:
            scheduler = sessions.get(content_id)
            if scheduler is None:
                return _no_session(content_id)
            await scheduler.seek(offset)
            return json.dumps({"status": "success", "session": _session_info(content_id, scheduler)})
        except Exception as e:
            logger.exception("Failed to seek")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_seek"] = music_seek

    return tools
