# src/llm/adapters/anthropic_adapter.py - v1
"""Anthropic Claude adapter implementing BaseGenerationClient.

Uses the official anthropic SDK (lazy import). SDK errors are mapped onto the
pipeline taxonomy: 5xx/529 and connection failures are server-class
transient errors, 429 is transient but not server-class, any other 4xx is
permanent.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from typing import Any

from draftsmith.core.errors import GenerationServiceError, TransientServiceError
from draftsmith.llm.base_client import BaseGenerationClient
from draftsmith.llm.models import (
    GenerationResult,
    Message,
    Prompt,
    StreamChunk,
    TokenUsage,
)

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseGenerationClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or None)
        return self.__client

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(self, prompt: Prompt) -> GenerationResult:
        """Text completion via the Messages API."""
        start = time.monotonic()
        try:
            response = await self._client.messages.create(**self._build_kwargs(prompt))
        except Exception as e:
            raise _map_error(e) from e
        latency_ms = int((time.monotonic() - start) * 1000)

        return GenerationResult(
            content=_extract_text(response),
            usage=TokenUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            ),
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    async def stream(self, prompt: Prompt) -> AsyncIterator[StreamChunk]:
        """Stream text deltas, then a final chunk carrying usage."""
        try:
            async with self._client.messages.stream(**self._build_kwargs(prompt)) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield StreamChunk(text=text)
                final = await stream.get_final_message()
        except Exception as e:
            raise _map_error(e) from e

        yield StreamChunk(
            usage=TokenUsage(
                input_tokens=final.usage.input_tokens,
                output_tokens=final.usage.output_tokens,
            ),
            model=final.model,
        )

    # --- Internal helpers ---

    def _build_kwargs(self, prompt: Prompt) -> dict[str, Any]:
        return {
            "model": self._model,
            "max_tokens": prompt.max_tokens,
            "temperature": prompt.temperature,
            "system": prompt.system,
            "messages": [_to_api_message(m) for m in prompt.messages],
        }


def _to_api_message(m: Message) -> dict[str, Any]:
    return {"role": m.role, "content": m.content}


def _extract_text(response: Any) -> str:
    """Concatenate text blocks of a Messages API response."""
    return "".join(
        block.text for block in response.content if getattr(block, "type", None) == "text"
    )


def _map_error(error: Exception) -> Exception:
    """Translate anthropic SDK exceptions into pipeline errors."""
    import anthropic

    if isinstance(error, anthropic.APIConnectionError):
        return TransientServiceError(f"Unable to reach generation service: {error}")
    if isinstance(error, anthropic.APIStatusError):
        status = error.status_code
        if status >= 500:
            return TransientServiceError(f"Generation service error ({status})", status_code=status)
        if status == 429:
            return TransientServiceError(
                "Generation service rate limited", server_class=False, status_code=status
            )
        return GenerationServiceError(f"Generation request rejected ({status}): {error}")
    logger.debug("Unmapped generation error: %r", error)
    return error
