# src/pipeline/streaming.py - v2
"""Token batching between the generation stream and event observers.

The generate stage is the producer: it puts fragments on a bounded queue.
TokenBatcher is the single consumer: it owns the flush timer and emits at
most one TokenBatch per interval, so update frequency downstream does not
depend on how fast the model produces tokens.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_INTERVAL_S = 0.05
DEFAULT_QUEUE_SIZE = 256


class TokenBatcher:
    """Accumulates fragments and flushes them on a fixed interval.

    Args:
        emit: Called with (text, fragment_count, sequence) for each flush.
        flush_interval_s: Wall-clock interval between flushes.
        max_queue: Bound of the producer/consumer queue.
        is_cancelled: Polled once per flush cycle; when it returns True the
            batcher flushes everything already queued and stops.
        sequence_offset: Number of batches already emitted for this run by an
            earlier batcher; flushes continue numbering after it.
    """

    def __init__(
        self,
        emit: Callable[[str, int, int], None],
        flush_interval_s: float = DEFAULT_FLUSH_INTERVAL_S,
        max_queue: int = DEFAULT_QUEUE_SIZE,
        is_cancelled: Callable[[], bool] | None = None,
        sequence_offset: int = 0,
    ) -> None:
        self._emit = emit
        self.flush_interval_s = flush_interval_s
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_queue)
        self._is_cancelled = is_cancelled or (lambda: False)
        self._closed = False
        self._sequence_offset = sequence_offset
        self._sequence = sequence_offset
        self.delivered: list[str] = []

    @property
    def flush_count(self) -> int:
        return self._sequence - self._sequence_offset

    @property
    def delivered_text(self) -> str:
        return "".join(self.delivered)

    async def put(self, fragment: str) -> None:
        """Producer side: blocks while the queue is full."""
        await self._queue.put(fragment)

    def close(self) -> None:
        """Producer is done; the batcher drains and stops at the next cycle."""
        self._closed = True

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        buffer: list[str] = []
        next_flush = loop.time() + self.flush_interval_s

        while True:
            remaining = next_flush - loop.time()
            if remaining > 0:
                try:
                    buffer.append(await asyncio.wait_for(self._queue.get(), remaining))
                    continue
                except asyncio.TimeoutError:
                    pass

            stopping = self._is_cancelled() or (self._closed and self._queue.empty())
            if stopping:
                buffer.extend(self._drain())
            self._flush(buffer)
            buffer = []
            if stopping:
                logger.debug("Token batcher stopped after %d flush(es)", self._sequence)
                return
            next_flush = loop.time() + self.flush_interval_s

    def _drain(self) -> list[str]:
        items: list[str] = []
        while not self._queue.empty():
            items.append(self._queue.get_nowait())
        return items

    def _flush(self, buffer: list[str]) -> None:
        if not buffer:
            return
        text = "".join(buffer)
        self._sequence += 1
        self.delivered.append(text)
        self._emit(text, len(buffer), self._sequence)
