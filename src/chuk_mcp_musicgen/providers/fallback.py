"""
Fallback provider - a primary backend with a secondary behind it.
"""

from __future__ import annotations

import asyncio
import logging

from chuk_mcp_musicgen.errors import ProviderError, ProviderTimeout
from chuk_mcp_musicgen.models.request import GenerationRequest
from chuk_mcp_musicgen.providers.base import GenerationProvider, RawGenerationOutput

logger = logging.getLogger(__name__)


class FallbackProvider:
    """
    Try the primary provider; on a transport failure ask the secondary.

    Malformed output from the primary is a ProviderError too, so it also
    falls through. Errors from the secondary propagate unchanged.

    ``primary_timeout`` bounds the primary on its own. It must be shorter
    than the caller's overall wait, or the secondary never gets its turn.
    """

    def __init__(
        self,
        primary: GenerationProvider,
        secondary: GenerationProvider,
        primary_timeout: float | None = None,
    ) -> None:
        if primary_timeout is not None and primary_timeout <= 0:
            raise ValueError(f"primary_timeout must be positive, got {primary_timeout}")
        self.primary = primary
        self.secondary = secondary
        self.primary_timeout = primary_timeout
        self.name = f"{primary.name}+{secondary.name}"

    async def _ask_primary(self, request: GenerationRequest) -> RawGenerationOutput:
        if self.primary_timeout is None:
            return await self.primary.generate(request)
        try:
            return await asyncio.wait_for(self.primary.generate(request), self.primary_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(self.primary_timeout, self.primary.name) from e

    async def generate(self, request: GenerationRequest) -> RawGenerationOutput:
        try:
            return await self._ask_primary(request)
        except ProviderError as e:
            logger.warning(
                "Provider %s failed (%s); falling back to %s", self.primary.name, e, self.secondary.name
            )
            return await self.secondary.generate(request)
