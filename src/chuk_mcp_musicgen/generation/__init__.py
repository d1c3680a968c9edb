"""
Generation pipeline - orchestration and the content cache.
"""

from chuk_mcp_musicgen.generation.cache import CacheEntry, ContentCache
from chuk_mcp_musicgen.generation.orchestrator import (
    GenerationEvent,
    GenerationListener,
    GenerationOrchestrator,
    RetryBudget,
)

__all__ = [
    "CacheEntry",
    "ContentCache",
    "GenerationEvent",
    "GenerationListener",
    "GenerationOrchestrator",
    "RetryBudget",
]
