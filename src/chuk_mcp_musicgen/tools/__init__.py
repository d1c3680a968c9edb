"""
MCP tool implementations.

Tools are organized by domain:
- generation - Generate, look up, re-time, validate and export content
- playback - Real-time playback sessions
"""

from chuk_mcp_musicgen.tools.generation import register_generation_tools
from chuk_mcp_musicgen.tools.playback import register_playback_tools

__all__ = [
    "register_generation_tools",
    "register_playback_tools",
]
