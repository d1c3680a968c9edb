"""
OpenAI-backed provider - one chat-completions exchange per call.

Uses the async client in JSON mode so the reply is a single JSON object that
the parser can validate. Transport failures are mapped onto the pipeline's
error taxonomy; retrying is the orchestrator's job, so the client is built
with ``max_retries=0``.
"""

from __future__ import annotations

import logging

import openai
from openai import AsyncOpenAI

from chuk_mcp_musicgen.errors import ProviderError, ProviderMalformedOutput, ProviderTimeout
from chuk_mcp_musicgen.models.request import GenerationRequest
from chuk_mcp_musicgen.providers.base import RawGenerationOutput
from chuk_mcp_musicgen.providers.prompt import SYSTEM_PROMPT, build_prompt

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


class OpenAIProvider:
    """Generate fragments with an OpenAI chat model."""

    name = "openai"

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.8,
        timeout: float = 30.0,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self._client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )

    async def generate(self, request: GenerationRequest) -> RawGenerationOutput:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(request)},
        ]
        seed = request.parameters.get("seed")

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                response_format={"type": "json_object"},
                seed=seed if isinstance(seed, int) else None,
            )
        except openai.APITimeoutError as e:
            raise ProviderTimeout(self.timeout, self.name) from e
        except openai.APIError as e:
            raise ProviderError(f"OpenAI request failed: {e}", self.name) from e

        if not response.choices:
            raise ProviderMalformedOutput("Response contained no choices", None, self.name)
        choice = response.choices[0]
        content = choice.message.content
        if not content:
            raise ProviderMalformedOutput(
                f"Empty response (finish reason: {choice.finish_reason})", None, self.name
            )
        if choice.finish_reason == "length":
            logger.warning("OpenAI response was truncated at the token limit")

        return RawGenerationOutput(text=content, provider=self.name, request=request)
