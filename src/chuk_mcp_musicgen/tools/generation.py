"""
Generation tools - MCP tools for generating and exporting content.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from chuk_mcp_musicgen.compiler import from_notation, timeline_to_midi
from chuk_mcp_musicgen.constants import Difficulty, ErrorMessages, SuccessMessages
from chuk_mcp_musicgen.errors import GenerationFailed
from chuk_mcp_musicgen.generation import GenerationOrchestrator
from chuk_mcp_musicgen.models import GenerationRequest, UserContext
from chuk_mcp_musicgen.validation import build_validator

if TYPE_CHECKING:
    from chuk_mcp_server import ChukMCPServer

logger = logging.getLogger(__name__)


def register_generation_tools(
    mcp: ChukMCPServer,
    orchestrator: GenerationOrchestrator,
    output_dir: Path,
) -> dict[str, Any]:
    """
    Register generation tools with the MCP server.

    Args:
        mcp: The MCP server instance
        orchestrator: The generation orchestrator
        output_dir: Directory for MIDI exports

    Returns:
        Dictionary of registered tool functions
    """
    tools: dict[str, Any] = {}

    def _not_found(content_id: str) -> str:
        return json.dumps(
            {"status": "error", "message": ErrorMessages.CONTENT_NOT_FOUND.format(content_id=content_id)}
        )

    @mcp.tool  # type: ignore[arg-type]
    async def music_generate(
        key: str,
        content_type: str = "lead_sheet",
        difficulty: str = "intermediate",
        style: str = "pop",
        tempo: int = 120,
        length: int = 8,
        parameters: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> str:
        """
        Generate theory-validated practice content.

        Identical requests are served from the cache; concurrent identical
        requests share a single generation.

        Args:
            key: Key (e.g., "C", "Am", "F#_minor", "Bb major")
            content_type: melody, chord_progression or lead_sheet
            difficulty: beginner, intermediate or advanced
            style: Style tag (e.g., "pop", "swing", "classical")
            tempo: Tempo in BPM (40-240)
            length: Length in bars (1-64)
            parameters: Generation knobs (seed, time_signature, swing_ratio, ...)
            user_id: Requesting user, recorded as the content owner

        Returns:
            JSON string with the generated content

        Example:
            music_generate(key="D_minor", difficulty="beginner", style="classical", length=4)
        """
        try:
            request = GenerationRequest(
                type=content_type,
                key=key,
                difficulty=difficulty,
                style=style,
                tempo=tempo,
                length=length,
                parameters=parameters or {},
            )
            user = UserContext(user_id=user_id) if user_id else None
            content = await orchestrator.generate(request, user)

            summary = content.summary()
            return json.dumps(
                {
                    "status": "success",
                    "content": content.to_api_dict(),
                    "summary": summary,
                    "message": SuccessMessages.CONTENT_GENERATED.format(
                        content_type=request.content_type.value,
                        key=summary["key"],
                        measures=summary["measures"],
                    ),
                }
            )
        except GenerationFailed as e:
            logger.warning(f"Generation failed: {e}")
            return json.dumps(
                {
                    "status": "error",
                    "message": str(e),
                    "attempts": e.attempts,
                    "violations": [v.to_dict() for v in e.violations],
                }
            )
        except Exception as e:
            logger.exception("Failed to generate content")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_generate"] = music_generate

    @mcp.tool  # type: ignore[arg-type]
    async def music_get_content(content_id: str, include_timeline: bool = False) -> str:
        """
        Get previously generated content by ID.

        Args:
            content_id: Content ID returned by music_generate
            include_timeline: Include the full playback event list

        Returns:
            JSON string with the content record
        """
        try:
            content = orchestrator.get_content(content_id)
            if content is None:
                return _not_found(content_id)

            result: dict[str, Any] = {
                "status": "success",
                "content": content.to_api_dict(),
                "summary": content.summary(),
            }
            if include_timeline:
                result["timeline"] = content.timeline.to_dict()
            return json.dumps(result)
        except Exception as e:
            logger.exception("Failed to get content")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_get_content"] = music_get_content

    @mcp.tool  # type: ignore[arg-type]
    async def music_retime(content_id: str, tempo: int) -> str:
        """
        Re-derive a content's playback timeline at a new tempo.

        The notes are unchanged; no generation or validation is run.

        Args:
            content_id: Content ID
            tempo: New tempo in BPM (40-240)

        Returns:
            JSON string with the new timeline

        Example:
            music_retime(content_id="3f2a...", tempo=90)
        """
        try:
            content = orchestrator.get_content(content_id)
            if content is None:
                return _not_found(content_id)

            timeline = orchestrator.retime(content, tempo)
            return json.dumps(
                {
                    "status": "success",
                    "audioTimelineRef": f"timeline:{content.id}@{timeline.tempo}",
                    "timeline": timeline.to_dict(),
                    "message": SuccessMessages.CONTENT_RETIMED.format(
                        content_id=content_id, tempo=tempo
                    ),
                }
            )
        except Exception as e:
            logger.exception("Failed to retime content")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_retime"] = music_retime

    @mcp.tool  # type: ignore[arg-type]
    async def music_validate_notation(notation: str, difficulty: str = "intermediate") -> str:
        """
        Check a notation/v1 blob against the theory rules.

        Useful for reviewing hand-edited content before it is saved.

        Args:
            notation: notation/v1 JSON string
            difficulty: Tier whose thresholds to apply

        Returns:
            JSON string with pass/fail and every violation
        """
        try:
            fragment = from_notation(notation)
            result = build_validator(Difficulty(difficulty)).validate(fragment)
            return json.dumps(
                {
                    "status": "success",
                    "validation": result.to_dict(),
                    "message": "Passed" if result.passed else f"{len(result.errors)} errors",
                }
            )
        except Exception as e:
            logger.exception("Failed to validate notation")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_validate_notation"] = music_validate_notation

    @mcp.tool  # type: ignore[arg-type]
    async def music_export_midi(
        content_id: str,
        tempo: int | None = None,
        output_name: str | None = None,
    ) -> str:
        """
        Export content to a MIDI file.

        Args:
            content_id: Content ID
            tempo: Optional tempo override (defaults to the content's tempo)
            output_name: Optional output filename (without .mid extension)

        Returns:
            JSON string with the file path
        """
        try:
            content = orchestrator.get_content(content_id)
            if content is None:
                return _not_found(content_id)

            timeline = content.timeline if tempo is None else orchestrator.retime(content, tempo)
            ts = content.fragment.time_signature
            midi = timeline_to_midi(timeline, time_signature=(ts.numerator, ts.denominator))

            output_path = output_dir / f"{output_name or content.id}.mid"
            output_dir.mkdir(parents=True, exist_ok=True)
            midi.save(str(output_path))

            return json.dumps(
                {
                    "status": "success",
                    "path": str(output_path),
                    "tempo": timeline.tempo,
                    "events": len(timeline.events),
                    "message": SuccessMessages.MIDI_EXPORTED.format(
                        content_id=content_id, path=output_path
                    ),
                }
            )
        except Exception as e:
            logger.exception("Failed to export MIDI")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_export_midi"] = music_export_midi

    @mcp.tool  # type: ignore[arg-type]
    async def music_cache_stats() -> str:
        """
        Get content cache statistics.

        Returns:
            JSON string with size, hit/miss counts and in-flight productions
        """
        try:
            return json.dumps({"status": "success", "cache": orchestrator.cache.stats()})
        except Exception as e:
            logger.exception("Failed to get cache stats")
            return json.dumps({"status": "error", "message": str(e)})

    tools["music_cache_stats"] = music_cache_stats

    return tools
