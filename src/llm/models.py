# src/llm/models.py - v1
"""Generation-service types: Message, Prompt, TokenUsage, GenerationResult, StreamChunk."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class Message(BaseModel):
    """Single conversation turn. System instructions never travel here."""

    role: Literal["user", "assistant"]
    content: str


class Prompt(BaseModel):
    """Role-separated prompt: system instructions apart from caller content."""

    system: str
    messages: list[Message]
    max_tokens: int = 1024
    temperature: float = 0.7


class TokenUsage(BaseModel):
    """Token counts reported for one generation call."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class GenerationResult(BaseModel):
    """Normalized non-streaming result."""

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str
    provider: str
    latency_ms: int = 0
    raw_response: Any = None


class StreamChunk(BaseModel):
    """One streamed fragment. The final chunk carries usage and model."""

    text: str = ""
    usage: TokenUsage | None = None
    model: str | None = None
