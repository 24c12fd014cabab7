# tests/unit/storage/test_unit_sqlite_store.py - v1
"""Tests for storage/sqlite_store.py - persistence and failure mapping."""

from __future__ import annotations

import pytest

from draftsmith.core.errors import StoreUnavailableError
from draftsmith.core.models import PipelineRun, StageResult, StyleProfile
from draftsmith.storage.sqlite_store import SqliteStore


class TestSqliteStore:
    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        path = tmp_path / "store.db"
        store = SqliteStore(path)
        await store.write_profile(StyleProfile(version=4))
        store.close()

        reopened = SqliteStore(path)
        assert (await reopened.read_profile("general")).version == 4
        reopened.close()

    @pytest.mark.asyncio
    async def test_in_memory_database(self):
        store = SqliteStore(":memory:")
        await store.write_profile(StyleProfile(version=1))
        assert (await store.read_profile("general")).version == 1
        store.close()

    @pytest.mark.asyncio
    async def test_run_payloads_not_persisted(self, tmp_path):
        store = SqliteStore(tmp_path / "store.db")
        run = PipelineRun()
        run.stage_results.append(
            StageResult(stage="select_template", outcome="success", payload={"large": "object"})
        )
        await store.append_run(run)
        loaded = await store.read_run(run.run_id)
        assert loaded.stage_results[0].payload is None
        store.close()

    @pytest.mark.asyncio
    async def test_closed_connection_raises_store_unavailable(self, tmp_path):
        store = SqliteStore(tmp_path / "store.db")
        store.close()
        with pytest.raises(StoreUnavailableError):
            await store.read_profile("general")

    def test_unopenable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(StoreUnavailableError):
            SqliteStore(blocker / "sub" / "store.db")
