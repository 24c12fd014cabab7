# src/llm/base_client.py - v1
"""Abstract generation-service interface.

Adapters must raise TransientServiceError for retryable failures (with
`server_class=True` for server/unavailable errors) and GenerationServiceError
for permanent ones.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from draftsmith.llm.models import GenerationResult, Prompt, StreamChunk


class BaseGenerationClient(ABC):
    """Unified interface for generation providers."""

    @abstractmethod
    async def complete(self, prompt: Prompt) -> GenerationResult:
        """Non-streaming completion."""

    @abstractmethod
    def stream(self, prompt: Prompt) -> AsyncIterator[StreamChunk]:
        """Streaming completion yielding text fragments, then a usage chunk."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, ...)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model used for cost accounting."""
