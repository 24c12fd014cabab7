# tests/unit/resilience/test_unit_cooldown.py - v2
"""Tests for resilience/cooldown.py - per-requester admission guard."""

from __future__ import annotations

import pytest

from draftsmith.core.errors import CooldownActiveError
from draftsmith.resilience.cooldown import CooldownGuard


class TestCooldownGuard:
    def test_first_submission_accepted(self, clock):
        guard = CooldownGuard(120, clock=clock)
        guard.acquire("u1", "r1")
        assert guard.is_active("u1")

    def test_active_run_blocks_second(self, clock):
        guard = CooldownGuard(0, clock=clock)
        guard.acquire("u1", "r1")
        with pytest.raises(CooldownActiveError):
            guard.acquire("u1", "r2")

    def test_interval_enforced_after_release(self, clock):
        guard = CooldownGuard(120, clock=clock)
        guard.acquire("u1", "r1")
        guard.release("u1", "r1")
        clock.advance(30)
        with pytest.raises(CooldownActiveError) as exc_info:
            guard.acquire("u1", "r2")
        assert exc_info.value.remaining_s == pytest.approx(90)
        assert exc_info.value.retryable is True

    def test_accepted_after_interval(self, clock):
        guard = CooldownGuard(120, clock=clock)
        guard.acquire("u1", "r1")
        guard.release("u1", "r1")
        clock.advance(120)
        guard.acquire("u1", "r2")
        assert guard.remaining("u1") == pytest.approx(120)

    def test_requesters_are_independent(self, clock):
        guard = CooldownGuard(120, clock=clock)
        guard.acquire("u1", "r1")
        guard.acquire("u2", "r2")
        assert guard.is_active("u2")

    def test_release_ignores_other_run(self, clock):
        guard = CooldownGuard(120, clock=clock)
        guard.acquire("u1", "r1")
        guard.release("u1", "other")
        assert guard.is_active("u1")

    def test_check_reserves_nothing(self, clock):
        guard = CooldownGuard(120, clock=clock)
        guard.check("u1")
        guard.check("u1")
        assert not guard.is_active("u1")
        assert guard.remaining("u1") == 0.0
        guard.acquire("u1", "r1")
        with pytest.raises(CooldownActiveError):
            guard.check("u1")
