# tests/unit/style/test_unit_engine.py - v1
"""Tests for style/engine.py - signal intake, recompute and profile reads."""

from __future__ import annotations

import pytest

from draftsmith.core.errors import StoreUnavailableError, ValidationError
from draftsmith.core.models import ExplicitFeedback, PipelineRun, StyleProfile
from draftsmith.pipeline.events import EventBus, RunCompleted
from draftsmith.storage.memory_store import MemoryStore
from draftsmith.style.engine import StyleLearningEngine

BEFORE = "We can help with your project. Our team has experience."
AFTER = "Hey, I'm gonna fix this fast. Our team has experience."


class _DownStore(MemoryStore):
    async def read_profile(self, category):
        raise StoreUnavailableError("profile table locked")


@pytest.fixture
def engine(store, clock) -> StyleLearningEngine:
    return StyleLearningEngine(store, clock=clock)


class TestLoadProfile:
    @pytest.mark.asyncio
    async def test_cold_start_returns_neutral(self, engine):
        load = await engine.load_profile()
        assert load.cold_start
        assert load.is_default
        assert load.profile == StyleProfile.neutral("general")

    @pytest.mark.asyncio
    async def test_store_failure_is_degraded(self, clock):
        engine = StyleLearningEngine(_DownStore(), clock=clock)
        load = await engine.load_profile()
        assert load.degraded
        assert not load.cold_start
        assert load.profile.version == 0

    @pytest.mark.asyncio
    async def test_stored_profile_returned(self, engine):
        await engine.recompute()
        load = await engine.load_profile()
        assert not load.is_default
        assert load.profile.version == 1


class TestRecordEdit:
    @pytest.mark.asyncio
    async def test_unchanged_text_records_nothing(self, engine, store):
        assert await engine.record_edit("p1", "body", BEFORE, BEFORE) is None
        assert await store.read_edits(100) == []

    @pytest.mark.asyncio
    async def test_entry_stored(self, engine, store, clock):
        entry = await engine.record_edit("p1", "hook", BEFORE, AFTER)
        await engine.wait_idle()
        assert entry is not None
        assert entry.section == "hook"
        assert entry.timestamp == clock.now()
        assert [e.op for e in entry.edits] == ["replace"]
        assert [e.entry_id for e in await store.read_edits(100)] == [entry.entry_id]

    @pytest.mark.asyncio
    async def test_window_capped(self, store, clock):
        engine = StyleLearningEngine(store, window_size=5, clock=clock)
        for i in range(7):
            clock.advance(60)
            await engine.record_edit(f"p{i}", "body", BEFORE, f"Edit number {i} is here.")
        await engine.wait_idle()
        edits = await store.read_edits(100)
        assert len(edits) == 5
        assert edits[0].proposal_id == "p2"


class TestRecompute:
    @pytest.mark.asyncio
    async def test_explicit_only_below_threshold(self, engine):
        for i in range(9):
            await engine.record_edit(f"p{i}", "body", BEFORE, AFTER)
        await engine.wait_idle()
        profile = await engine.recompute()
        assert not profile.implicit_active
        assert profile.implicit_sample_count == 9
        assert (profile.explicit_weight, profile.implicit_weight) == (1.0, 0.0)
        assert profile.combined == profile.explicit

    @pytest.mark.asyncio
    async def test_implicit_activates_at_threshold(self, engine):
        for i in range(10):
            await engine.record_edit(f"p{i}", "body", BEFORE, AFTER)
        await engine.wait_idle()
        profile = await engine.recompute()
        assert profile.implicit_active
        assert profile.explicit_weight == pytest.approx(0.7)
        assert profile.implicit_weight == pytest.approx(0.3)
        assert profile.explicit_weight + profile.implicit_weight == pytest.approx(1.0)
        assert profile.combined.tone < profile.explicit.tone

    @pytest.mark.asyncio
    async def test_same_proposal_counts_once(self, engine):
        for i in range(12):
            await engine.record_edit("p-same", "body", BEFORE, f"Changed sentence {i}.")
        await engine.wait_idle()
        profile = await engine.recompute()
        assert profile.implicit_sample_count == 1
        assert not profile.implicit_active

    @pytest.mark.asyncio
    async def test_version_increments(self, engine):
        first = await engine.recompute()
        second = await engine.recompute()
        assert (first.version, second.version) == (1, 2)
        assert second.computed_at is not None

    @pytest.mark.asyncio
    async def test_recompute_is_deterministic(self, store, clock):
        engine = StyleLearningEngine(store, clock=clock)
        for i in range(10):
            clock.advance(3600)
            await engine.record_edit(f"p{i}", "body", BEFORE, AFTER)
        await engine.wait_idle()
        first = await engine.recompute()
        second = await engine.recompute()
        assert first.combined == second.combined
        assert first.implicit == second.implicit

    @pytest.mark.asyncio
    async def test_preference_feedback_applied(self, engine, store):
        await engine.record_feedback(ExplicitFeedback(kind="preference", dimension="tone", value=9.0))
        await engine.wait_idle()
        profile = await store.read_profile("general")
        assert profile.explicit.tone == 9.0
        assert profile.combined.tone == 9.0

    @pytest.mark.asyncio
    async def test_no_golden_samples_no_drift(self, engine):
        profile = await engine.recompute()
        assert profile.drift_distance is None
        assert not profile.recalibration_needed

    @pytest.mark.asyncio
    async def test_drift_checked_against_golden(self, engine, make_long_text):
        await engine.set_golden_samples([make_long_text()])
        await engine.wait_idle()
        profile = await engine.recompute()
        assert profile.drift_distance == pytest.approx(0.0)


class TestGoldenSamples:
    @pytest.mark.asyncio
    async def test_too_many_samples(self, engine, make_long_text):
        with pytest.raises(ValidationError, match="At most 5"):
            await engine.set_golden_samples([make_long_text()] * 6)

    @pytest.mark.asyncio
    async def test_short_sample_rejected(self, engine, store, make_long_text):
        with pytest.raises(ValidationError, match="minimum is 200"):
            await engine.set_golden_samples([make_long_text(), "Too short."])
        assert await store.read_golden_samples() == []

    @pytest.mark.asyncio
    async def test_replaces_wholesale(self, engine, store, make_long_text):
        await engine.set_golden_samples([make_long_text(), make_long_text(seed="Another voice here")])
        await engine.set_golden_samples([make_long_text()])
        await engine.wait_idle()
        assert len(await store.read_golden_samples()) == 1


class TestBusIntegration:
    @pytest.mark.asyncio
    async def test_run_completed_triggers_recompute(self, engine, store):
        bus = EventBus()
        engine.attach(bus)
        run = PipelineRun(status="completed")
        bus.publish(RunCompleted(run_id=run.run_id, status="completed", run=run))
        await engine.wait_idle()
        profile = await store.read_profile("general")
        assert profile is not None
        assert profile.version == 1

    @pytest.mark.asyncio
    async def test_detach_stops_recompute(self, engine, store):
        bus = EventBus()
        engine.attach(bus)
        engine.detach(bus)
        run = PipelineRun(status="completed")
        bus.publish(RunCompleted(run_id=run.run_id, status="completed", run=run))
        await engine.wait_idle()
        assert await store.read_profile("general") is None

    @pytest.mark.asyncio
    async def test_recompute_failure_is_logged(self, clock, caplog):
        class _BrokenStore(MemoryStore):
            async def read_golden_samples(self):
                raise StoreUnavailableError("disk gone")

        engine = StyleLearningEngine(_BrokenStore(), clock=clock)
        engine.schedule_recompute()
        await engine.wait_idle()
        assert "Background style recompute failed" in caplog.text
