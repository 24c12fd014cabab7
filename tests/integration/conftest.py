# tests/integration/conftest.py - v3
"""Integration fixtures: a fully wired Draftsmith on in-memory backends.

The generation service is always scripted; every other collaborator is the
real implementation unless a test swaps it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from draftsmith.api.facade import Draftsmith
from draftsmith.config.settings import Settings
from draftsmith.llm.models import Prompt, StreamChunk
from draftsmith.storage.memory_store import MemoryStore

FAST_SETTINGS = {
    "stage_retry_backoff_s": 0.0,
    "stream_flush_interval_ms": 10,
    "cooldown_seconds": 120.0,
}


@pytest.fixture
def make_app(clock, make_client):
    """Factory: Draftsmith(settings overrides, client, store, collaborators)."""

    def _make(
        client=None,
        store=None,
        job_analyzer=None,
        risk_scanner=None,
        app_clock=None,
        **overrides,
    ) -> Draftsmith:
        settings = Settings(_env_file=None, **{**FAST_SETTINGS, **overrides})
        return Draftsmith(
            settings,
            client if client is not None else make_client(),
            store if store is not None else MemoryStore(),
            job_analyzer=job_analyzer,
            risk_scanner=risk_scanner,
            clock=app_clock or clock,
        )

    return _make


@pytest.fixture
def make_dropping_client(make_client, make_server_error):
    """Factory for a client that streams a few fragments, then drops.

    `drops` limits how many calls drop; later calls stream normally.
    """

    class DroppingClient(make_client):
        def __init__(self, fail_after: int = 3, drops: int | None = None, **kwargs) -> None:
            super().__init__(**kwargs)
            self.fail_after = fail_after
            self.drops = drops

        async def stream(self, prompt: Prompt) -> AsyncIterator[StreamChunk]:
            if self.drops is not None and self.calls >= self.drops:
                async for chunk in super().stream(prompt):
                    yield chunk
                return
            self.calls += 1
            self.prompts.append(prompt)
            for fragment in self.fragments[: self.fail_after]:
                yield StreamChunk(text=fragment)
            raise make_server_error("Generation service error (503) mid-stream")

    return DroppingClient
