# src/pipeline/events.py - v1
"""Pipeline events and the in-process event bus.

Events are one-way notifications. Publishing never waits for subscribers:
sync handlers run inline, async handlers are scheduled as tasks, and any
subscriber failure is logged and isolated from the publisher.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from draftsmith.core.models import PipelineRun, RunError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineEvent(BaseModel):
    """Base class of all pipeline events."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event_type: str
    run_id: str
    timestamp: datetime = Field(default_factory=_utcnow)


class StageProgress(PipelineEvent):
    event_type: Literal["stage_progress"] = "stage_progress"
    stage: str
    status: Literal["started", "success", "fallback", "failed", "skipped"]
    elapsed_ms: int = 0
    retry_count: int = 0


class TokenBatch(PipelineEvent):
    """One flush of the token batcher: all fragments of one interval."""

    event_type: Literal["token_batch"] = "token_batch"
    text: str
    fragment_count: int
    sequence: int


class RunCompleted(PipelineEvent):
    """Terminal event for completed and degraded runs."""

    event_type: Literal["run_completed"] = "run_completed"
    status: Literal["completed", "degraded"]
    run: PipelineRun


class RunFailed(PipelineEvent):
    """Terminal event for failed and cancelled runs."""

    event_type: Literal["run_failed"] = "run_failed"
    status: Literal["failed", "cancelled"]
    error: RunError
    run: PipelineRun


AnyEvent = Union[StageProgress, TokenBatch, RunCompleted, RunFailed]
Handler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBus:
    """Type-filtered publish/subscribe with fault isolation."""

    def __init__(self) -> None:
        self._handlers: dict[str, tuple[tuple[type[PipelineEvent], ...] | None, Handler]] = {}
        self._pending: set[asyncio.Task] = set()

    def subscribe(
        self,
        handler: Handler,
        event_types: type[PipelineEvent] | tuple[type[PipelineEvent], ...] | None = None,
    ) -> str:
        """Register `handler` for `event_types` (all events when None)."""
        if isinstance(event_types, type):
            event_types = (event_types,)
        subscription_id = str(uuid.uuid4())
        self._handlers[subscription_id] = (event_types, handler)
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> None:
        self._handlers.pop(subscription_id, None)

    def publish(self, event: PipelineEvent) -> None:
        """Deliver `event` to matching subscribers without waiting on them."""
        for event_types, handler in list(self._handlers.values()):
            if event_types is not None and not isinstance(event, event_types):
                continue
            name = getattr(handler, "__qualname__", repr(handler))
            try:
                result = handler(event)
            except Exception as e:
                logger.warning("Handler %s failed for %s: %s", name, event.event_type, e)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(lambda t, n=name, et=event.event_type: self._on_done(t, n, et))

    async def drain(self) -> None:
        """Wait for scheduled async handlers (used on shutdown and in tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _on_done(self, task: asyncio.Task, name: str, event_type: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Handler %s failed for %s: %s", name, event_type, error)
