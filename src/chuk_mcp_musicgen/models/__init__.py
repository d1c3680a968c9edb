"""
Data models for the generation pipeline.

This module provides:
- Note, Chord, MusicFragment: the canonical musical data model
- GenerationRequest, UserContext: inbound records (pydantic)

GeneratedContent lives in models.content (it depends on the compiler).
"""

from chuk_mcp_musicgen.models.fragment import Chord, FragmentEvent, MusicFragment, Note
from chuk_mcp_musicgen.models.request import GenerationRequest, UserContext

__all__ = [
    "Note",
    "Chord",
    "FragmentEvent",
    "MusicFragment",
    "GenerationRequest",
    "UserContext",
]
