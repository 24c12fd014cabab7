# src/resilience/cooldown.py - v2
"""Per-requester admission cooldown.

A requester may hold at most one active run, and accepted submissions from
the same requester are spaced by at least `interval_s`.
"""

from __future__ import annotations

import logging

from draftsmith.core.clock import Clock, SystemClock
from draftsmith.core.errors import CooldownActiveError

logger = logging.getLogger(__name__)


class CooldownGuard:
    """Tracks active runs and last accepted submission per requester."""

    def __init__(self, interval_s: float = 120.0, clock: Clock | None = None) -> None:
        self.interval_s = interval_s
        self._clock = clock or SystemClock()
        self._last_accepted: dict[str, float] = {}
        self._active: dict[str, str] = {}

    def remaining(self, requester_id: str) -> float:
        """Seconds until `requester_id` may submit again (0 when free)."""
        last = self._last_accepted.get(requester_id)
        if last is None:
            return 0.0
        return max(0.0, last + self.interval_s - self._clock.monotonic())

    def is_active(self, requester_id: str) -> bool:
        return requester_id in self._active

    def check(self, requester_id: str) -> None:
        """Raise if `requester_id` could not acquire a slot now; reserves nothing.

        Raises:
            CooldownActiveError: A run is active or the interval has not elapsed.
        """
        if requester_id in self._active:
            raise CooldownActiveError(requester_id, max(self.remaining(requester_id), 0.0))
        remaining = self.remaining(requester_id)
        if remaining > 0:
            logger.info("Requester %s rejected by cooldown (%.1fs left)", requester_id, remaining)
            raise CooldownActiveError(requester_id, remaining)

    def acquire(self, requester_id: str, run_id: str) -> None:
        """Reserve the requester's slot for `run_id`.

        Raises:
            CooldownActiveError: A run is active or the interval has not elapsed.
        """
        self.check(requester_id)
        self._active[requester_id] = run_id
        self._last_accepted[requester_id] = self._clock.monotonic()

    def release(self, requester_id: str, run_id: str) -> None:
        """Free the active slot if it is still held by `run_id`."""
        if self._active.get(requester_id) == run_id:
            del self._active[requester_id]
