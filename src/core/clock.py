# src/core/clock.py - v1
"""Injectable time source for breakers, cooldowns, ledger and decay.

Services never read the wall clock directly so tests can drive time with
ManualClock.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Time source protocol."""

    def now(self) -> datetime:
        """Current UTC datetime."""
        ...

    def monotonic(self) -> float:
        """Monotonic seconds, for interval arithmetic."""
        ...


class SystemClock:
    """Real clock backed by datetime.now and time.monotonic."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when advanced explicitly."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        self._mono = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        """Move both time sources forward by `seconds`."""
        self._now += timedelta(seconds=seconds)
        self._mono += seconds

    def set(self, when: datetime) -> None:
        """Jump wall time to `when` (monotonic moves by the same delta)."""
        delta = (when - self._now).total_seconds()
        self._now = when
        self._mono += max(0.0, delta)
