"""
Provider adapters - the boundary to generative backends.

This module provides:
- GenerationProvider protocol and RawGenerationOutput
- OpenAIProvider, RuleBasedProvider, FallbackProvider
- create_provider: pick a variant by configured name
- parse_raw_output: raw text -> MusicFragment
"""

from chuk_mcp_musicgen.providers.base import GenerationProvider, RawGenerationOutput
from chuk_mcp_musicgen.providers.fallback import FallbackProvider
from chuk_mcp_musicgen.providers.openai_provider import OpenAIProvider
from chuk_mcp_musicgen.providers.parser import parse_raw_output, strip_code_fence
from chuk_mcp_musicgen.providers.prompt import SYSTEM_PROMPT, build_prompt
from chuk_mcp_musicgen.providers.registry import PROVIDERS, available_providers, create_provider
from chuk_mcp_musicgen.providers.rule_based import RuleBasedProvider

__all__ = [
    "GenerationProvider",
    "RawGenerationOutput",
    "OpenAIProvider",
    "RuleBasedProvider",
    "FallbackProvider",
    "PROVIDERS",
    "available_providers",
    "create_provider",
    "parse_raw_output",
    "strip_code_fence",
    "SYSTEM_PROMPT",
    "build_prompt",
]
