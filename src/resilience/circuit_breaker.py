# src/resilience/circuit_breaker.py - v2
"""Per-stage and global circuit breakers.

CircuitBreaker tracks failures of one stage in a sliding time window:
closed -> open once failures inside the window exceed the threshold, open ->
half_open after the cooldown, half_open admits exactly one trial call whose
outcome closes or reopens the breaker.

GlobalCircuitBreaker counts consecutive server-class failures across all
stages within a monitoring window and pauses admission of new runs when the
streak reaches its threshold.

Both are process-lifetime services injected into the orchestrator; neither
is persisted.
"""

from __future__ import annotations

import logging
from collections import deque

from draftsmith.config.settings import Settings
from draftsmith.core.clock import Clock, SystemClock
from draftsmith.core.errors import CircuitOpenError
from draftsmith.core.models import CircuitState, OverrideRecord

logger = logging.getLogger(__name__)

GLOBAL_BREAKER_NAME = "global"


class CircuitBreaker:
    """Sliding-window failure guard for a single stage."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        window_s: float = 60.0,
        cooldown_s: float = 30.0,
        clock: Clock | None = None,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.window_s = window_s
        self.cooldown_s = cooldown_s
        self._clock = clock or SystemClock()
        self._failures: deque[float] = deque()
        self._state = "closed"
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._last_trial_at: float | None = None

    @property
    def state(self) -> str:
        self._maybe_half_open()
        return self._state

    def allow_request(self) -> bool:
        """Whether a call may be attempted now.

        In half_open the first caller gets the trial; later callers are
        refused until the trial outcome is recorded.
        """
        self._maybe_half_open()
        if self._state == "closed":
            return True
        if self._state == "open":
            return False
        if self._trial_in_flight:
            return False
        self._trial_in_flight = True
        self._last_trial_at = self._clock.monotonic()
        logger.info("Breaker '%s' half-open: admitting one trial call", self.name)
        return True

    def record_success(self) -> None:
        if self._state != "closed":
            logger.info("Breaker '%s' closed after successful trial", self.name)
        self._state = "closed"
        self._failures.clear()
        self._opened_at = None
        self._trial_in_flight = False

    def release_trial(self) -> None:
        """Give back a half-open trial whose call ended without an outcome.

        A cancelled trial says nothing about the stage, so the breaker stays
        half_open and the next caller gets the trial.
        """
        if self._state == "half_open" and self._trial_in_flight:
            self._trial_in_flight = False
            logger.info("Breaker '%s' trial abandoned; next call gets the trial", self.name)

    def record_failure(self) -> None:
        now = self._clock.monotonic()
        if self._state == "half_open":
            self._open(now)
            return

        self._failures.append(now)
        self._prune(now)
        if self._state == "closed" and len(self._failures) > self.failure_threshold:
            self._open(now)

    def retry_after(self) -> float:
        """Seconds until an open breaker goes half-open (0 when not open)."""
        if self.state != "open" or self._opened_at is None:
            return 0.0
        return max(0.0, self._opened_at + self.cooldown_s - self._clock.monotonic())

    def snapshot(self) -> CircuitState:
        state = self.state
        self._prune(self._clock.monotonic())
        return CircuitState(
            name=self.name,
            state=state,
            failure_count=len(self._failures),
            window_start=self._failures[0] if self._failures else None,
            opened_at=self._opened_at,
            last_trial_at=self._last_trial_at,
        )

    def _open(self, now: float) -> None:
        self._state = "open"
        self._opened_at = now
        self._trial_in_flight = False
        logger.warning(
            "Breaker '%s' opened (%d failure(s) within %.0fs); cooling down %.0fs",
            self.name, len(self._failures), self.window_s, self.cooldown_s,
        )

    def _maybe_half_open(self) -> None:
        if (
            self._state == "open"
            and self._opened_at is not None
            and self._clock.monotonic() - self._opened_at >= self.cooldown_s
        ):
            self._state = "half_open"
            self._trial_in_flight = False

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_s
        while self._failures and self._failures[0] < cutoff:
            self._failures.popleft()


class GlobalCircuitBreaker:
    """Pauses run admission after consecutive server-class failures.

    The streak spans all stages and only counts failures inside the
    monitoring window. A non-server failure breaks it, and so does a success
    of a stage that contributed to it.
    """

    def __init__(
        self,
        consecutive_threshold: int = 3,
        pause_s: float = 300.0,
        window_s: float = 60.0,
        clock: Clock | None = None,
    ) -> None:
        self.consecutive_threshold = consecutive_threshold
        self.pause_s = pause_s
        self.window_s = window_s
        self._clock = clock or SystemClock()
        self._streak: deque[tuple[float, str]] = deque()
        self._paused_at: float | None = None
        self._override_pending = False
        self.overrides: list[OverrideRecord] = []

    @property
    def consecutive_failures(self) -> int:
        self._prune(self._clock.monotonic())
        return len(self._streak)

    def is_paused(self) -> bool:
        if self._paused_at is None:
            return False
        if self._clock.monotonic() - self._paused_at >= self.pause_s:
            logger.info("Global breaker pause elapsed; admissions resumed")
            self._paused_at = None
            self._streak.clear()
            return False
        return True

    def remaining_s(self) -> float:
        if not self.is_paused() or self._paused_at is None:
            return 0.0
        return max(0.0, self._paused_at + self.pause_s - self._clock.monotonic())

    def admit(self) -> None:
        """Admit a new run or raise CircuitOpenError while paused.

        A pending override lets exactly one run through and is consumed.
        """
        if not self.is_paused():
            return
        if self._override_pending:
            self._override_pending = False
            logger.warning("Global breaker paused; admitting one run by override")
            return
        raise CircuitOpenError(GLOBAL_BREAKER_NAME, self.remaining_s())

    def grant_override(self, reason: str = "", run_id: str | None = None) -> OverrideRecord:
        """Allow exactly one run through the pause; returns the audit record."""
        record = OverrideRecord(
            kind="pause", run_id=run_id, reason=reason, timestamp=self._clock.now()
        )
        self._override_pending = True
        self.overrides.append(record)
        logger.warning("Global pause override granted (run=%s, reason=%r)", run_id, reason)
        return record

    def record_failure(self, server_class: bool, stage: str = "") -> None:
        if not server_class:
            self._streak.clear()
            return
        now = self._clock.monotonic()
        self._prune(now)
        self._streak.append((now, stage))
        if len(self._streak) >= self.consecutive_threshold and self._paused_at is None:
            self._paused_at = now
            logger.error(
                "Global breaker paused after %d consecutive server failures (%.0fs)",
                len(self._streak), self.pause_s,
            )

    def record_success(self, stage: str = "") -> None:
        """A stage recovered; its earlier failures no longer form a streak."""
        if any(failed == stage for _, failed in self._streak):
            self._streak.clear()

    def snapshot(self) -> CircuitState:
        paused = self.is_paused()
        return CircuitState(
            name=GLOBAL_BREAKER_NAME,
            state="open" if paused else "closed",
            failure_count=self.consecutive_failures,
            window_start=self._streak[0][0] if self._streak else None,
            opened_at=self._paused_at,
        )

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_s
        while self._streak and self._streak[0][0] < cutoff:
            self._streak.popleft()


class BreakerRegistry:
    """Lazily creates one CircuitBreaker per stage name."""

    def __init__(
        self,
        failure_threshold: int = 3,
        window_s: float = 60.0,
        cooldown_s: float = 30.0,
        clock: Clock | None = None,
    ) -> None:
        self._failure_threshold = failure_threshold
        self._window_s = window_s
        self._cooldown_s = cooldown_s
        self._clock = clock or SystemClock()
        self._breakers: dict[str, CircuitBreaker] = {}

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock | None = None) -> BreakerRegistry:
        return cls(
            failure_threshold=settings.breaker_failure_threshold,
            window_s=settings.breaker_window_s,
            cooldown_s=settings.breaker_cooldown_s,
            clock=clock,
        )

    def get(self, stage: str) -> CircuitBreaker:
        if stage not in self._breakers:
            self._breakers[stage] = CircuitBreaker(
                stage,
                failure_threshold=self._failure_threshold,
                window_s=self._window_s,
                cooldown_s=self._cooldown_s,
                clock=self._clock,
            )
        return self._breakers[stage]

    def snapshots(self) -> list[CircuitState]:
        return [b.snapshot() for b in self._breakers.values()]
