# tests/unit/pipeline/test_unit_events.py - v1
"""Tests for pipeline/events.py - EventBus delivery and fault isolation."""

from __future__ import annotations

import asyncio

import pytest

from draftsmith.core.models import PipelineRun, RunError
from draftsmith.pipeline.events import (
    EventBus,
    RunCompleted,
    RunFailed,
    StageProgress,
    TokenBatch,
)


def _progress(run_id: str = "r1") -> StageProgress:
    return StageProgress(run_id=run_id, stage="generate", status="started")


class TestEventBus:
    def test_sync_handler_receives_all_events(self):
        bus = EventBus()
        seen = []
        bus.subscribe(seen.append)
        bus.publish(_progress())
        bus.publish(TokenBatch(run_id="r1", text="hi", fragment_count=1, sequence=1))
        assert [e.event_type for e in seen] == ["stage_progress", "token_batch"]

    def test_type_filter(self):
        bus = EventBus()
        seen = []
        bus.subscribe(seen.append, (RunCompleted, RunFailed))
        bus.publish(_progress())
        run = PipelineRun(status="failed")
        bus.publish(RunFailed(run_id=run.run_id, status="failed",
                              error=RunError(kind="x", message="boom"), run=run))
        assert len(seen) == 1
        assert seen[0].status == "failed"

    def test_failing_handler_isolated(self, caplog):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        bus.subscribe(broken)
        bus.subscribe(seen.append)
        bus.publish(_progress())
        assert len(seen) == 1
        assert "subscriber bug" in caplog.text

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        sub = bus.subscribe(seen.append)
        bus.unsubscribe(sub)
        bus.unsubscribe("unknown")
        bus.publish(_progress())
        assert seen == []

    @pytest.mark.asyncio
    async def test_async_handler_does_not_block_publisher(self):
        bus = EventBus()
        seen = []

        async def slow(event):
            await asyncio.sleep(0.01)
            seen.append(event.run_id)

        bus.subscribe(slow)
        bus.publish(_progress("r9"))
        assert seen == []
        await bus.drain()
        assert seen == ["r9"]

    @pytest.mark.asyncio
    async def test_async_handler_failure_logged(self, caplog):
        bus = EventBus()

        async def broken(event):
            raise RuntimeError("async subscriber bug")

        bus.subscribe(broken)
        bus.publish(_progress())
        await bus.drain()
        assert "async subscriber bug" in caplog.text
