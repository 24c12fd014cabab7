# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Provides a manual clock, in-memory store, scripted generation client and
sample jobs. No external dependencies - the generation service is faked.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timezone

import pytest

from draftsmith.config.settings import Settings
from draftsmith.core.clock import ManualClock
from draftsmith.core.errors import TransientServiceError
from draftsmith.core.models import GenerationRequest, JobInput
from draftsmith.llm.base_client import BaseGenerationClient
from draftsmith.llm.models import GenerationResult, Prompt, StreamChunk, TokenUsage
from draftsmith.storage.memory_store import MemoryStore

SAMPLE_JOB_TEXT = (
    "We are a SaaS startup looking for a senior Python developer to rebuild our "
    "FastAPI backend. The current API is slow and we need it fixed before our "
    "launch next month. Experience with PostgreSQL and AWS is required."
)

SAMPLE_DRAFT = (
    "Your launch date is close and a slow API is the last thing you need. "
    "I rebuilt a FastAPI backend for a fintech client and cut p95 latency by 60%. "
    "Happy to walk you through the plan on a short call this week."
)


class FakeGenerationClient(BaseGenerationClient):
    """Scripted generation client.

    Args:
        fragments: Text fragments streamed per call.
        failures: Exceptions raised by successive calls before succeeding.
        delay_s: Sleep between fragments.
        usage: Usage reported in the final chunk (None = no usage chunk).
    """

    def __init__(
        self,
        fragments: list[str] | None = None,
        failures: list[Exception] | None = None,
        delay_s: float = 0.0,
        usage: TokenUsage | None = TokenUsage(input_tokens=1200, output_tokens=300),
        model: str = "claude-sonnet-4-20250514",
    ) -> None:
        self.fragments = fragments if fragments is not None else _split_words(SAMPLE_DRAFT)
        self.failures = list(failures or [])
        self.delay_s = delay_s
        self.usage = usage
        self._model = model
        self.calls = 0
        self.prompts: list[Prompt] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(self, prompt: Prompt) -> GenerationResult:
        text = "".join([c.text async for c in self.stream(prompt)])
        return GenerationResult(
            content=text, usage=self.usage or TokenUsage(), model=self._model, provider="fake"
        )

    async def stream(self, prompt: Prompt) -> AsyncIterator[StreamChunk]:
        self.calls += 1
        self.prompts.append(prompt)
        if self.failures:
            raise self.failures.pop(0)
        for fragment in self.fragments:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            yield StreamChunk(text=fragment)
        if self.usage is not None:
            yield StreamChunk(usage=self.usage, model=self._model)


def _split_words(text: str) -> list[str]:
    words = text.split(" ")
    return [w + " " for w in words[:-1]] + [words[-1]]


def server_error(message: str = "Generation service error (503)") -> TransientServiceError:
    return TransientServiceError(message, server_class=True, status_code=503)


# === FIXTURES ===


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any .env file, tuned for fast tests."""
    return Settings(
        _env_file=None,
        stage_retry_backoff_s=0.0,
        stream_flush_interval_ms=10,
        cooldown_seconds=120.0,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def make_client():
    """Factory for scripted generation clients."""
    return FakeGenerationClient


@pytest.fixture
def make_server_error():
    return server_error


@pytest.fixture
def make_long_text():
    return long_text


@pytest.fixture
def sample_job() -> JobInput:
    return JobInput(
        raw_text=SAMPLE_JOB_TEXT,
        title="Senior Python developer for FastAPI rebuild",
        skills=["Python", "FastAPI", "PostgreSQL"],
        budget="$3,000",
    )


@pytest.fixture
def sample_request(sample_job: JobInput) -> GenerationRequest:
    return GenerationRequest(requester_id="user-1", job=sample_job)


def long_text(words: int = 220, seed: str = "Clear plans help teams ship reliable software") -> str:
    """Deterministic prose of at least `words` words for golden samples."""
    base = seed.split()
    sentences: list[str] = []
    count = 0
    i = 0
    while count < words:
        sentence = " ".join(base[(i + j) % len(base)] for j in range(8))
        sentences.append(sentence.capitalize() + ".")
        count += 8
        i += 1
    return " ".join(sentences)
