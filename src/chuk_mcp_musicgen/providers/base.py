"""
Provider protocol and the raw output it returns.

A provider performs one request/response exchange with a generative backend.
It does not retry, validate or cache; the orchestrator owns all of that.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from chuk_mcp_musicgen.models.request import GenerationRequest


@dataclass(frozen=True)
class RawGenerationOutput:
    """Unparsed provider output plus the request it answers."""

    text: str
    provider: str
    request: GenerationRequest | None = None


@runtime_checkable
class GenerationProvider(Protocol):
    """
    Anything that can turn a request into raw musical output.

    Raises:
        ProviderError: Transport failure
        ProviderTimeout: The backend did not answer in time
    """

    name: str

    async def generate(self, request: GenerationRequest) -> RawGenerationOutput: ...
