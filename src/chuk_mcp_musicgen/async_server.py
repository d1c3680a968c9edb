#!/usr/bin/env python3
"""
Async Music Generation MCP Server using chuk-mcp-server

This server generates short, theory-validated practice pieces (melodies,
chord progressions and lead sheets) for music learners. Every piece passes
the theory validator before it is returned, and identical requests are
served from a shared content cache.

The server provides tools for:
- Generating content by key, style, difficulty, tempo and length
- Looking up, re-timing and exporting generated content to MIDI
- Validating hand-edited notation against the theory rules
- Real-time playback sessions (MIDI port or recording sink)
"""

import logging
from collections.abc import Callable

from chuk_mcp_server import ChukMCPServer

from chuk_mcp_musicgen.config import Settings, load_settings
from chuk_mcp_musicgen.generation import ContentCache, GenerationOrchestrator
from chuk_mcp_musicgen.playback import MidoPortSink, RecordingSink, SynthesisSink
from chuk_mcp_musicgen.providers import create_provider
from chuk_mcp_musicgen.tools import register_generation_tools, register_playback_tools

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_orchestrator(settings: Settings) -> GenerationOrchestrator:
    """Wire provider, cache and orchestrator from settings."""
    provider = create_provider(settings.provider, settings.generation)
    cache = ContentCache(capacity=settings.cache.capacity, ttl=settings.cache.ttl)
    return GenerationOrchestrator(
        provider,
        cache,
        max_attempts=settings.generation.max_attempts,
        timeout=settings.generation.timeout,
    )


def sink_factory_for(settings: Settings) -> Callable[[], SynthesisSink]:
    port_name = settings.playback.output_port
    if port_name:
        return lambda: MidoPortSink(port_name=port_name)
    return RecordingSink


# Settings and shared components
settings = load_settings()
orchestrator = build_orchestrator(settings)
OUTPUT_DIR = settings.output_dir

# Create the MCP server instance
mcp = ChukMCPServer("chuk-mcp-musicgen")

# Register all tools
generation_tools = register_generation_tools(mcp, orchestrator, OUTPUT_DIR)
playback_tools = register_playback_tools(
    mcp, orchestrator, sink_factory_for(settings), loop_default=settings.playback.loop
)

# Export tool functions for direct access
music_generate = generation_tools["music_generate"]
music_get_content = generation_tools["music_get_content"]
music_retime = generation_tools["music_retime"]
music_validate_notation = generation_tools["music_validate_notation"]
music_export_midi = generation_tools["music_export_midi"]
music_cache_stats = generation_tools["music_cache_stats"]

music_play = playback_tools["music_play"]
music_pause = playback_tools["music_pause"]
music_stop = playback_tools["music_stop"]
music_seek = playback_tools["music_seek"]

logger.info("CHUK Music Generation MCP Server initialized")
logger.info(f"  Provider: {orchestrator.provider.name}")
logger.info(f"  Cache capacity: {settings.cache.capacity}")
logger.info(f"  Output dir: {OUTPUT_DIR}")
