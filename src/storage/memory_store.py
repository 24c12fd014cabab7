# src/storage/memory_store.py - v1
"""In-process store (STORE_BACKEND=memory). Default for tests and the CLI demo."""

from __future__ import annotations

from datetime import datetime

from draftsmith.core.models import (
    CostLedgerEntry,
    EditDiffEntry,
    ExplicitFeedback,
    GoldenSample,
    OverrideRecord,
    PipelineRun,
    StyleProfile,
)
from draftsmith.storage.base_store import BaseStore


class MemoryStore(BaseStore):
    """Dict/list backed store. Models are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._profiles: dict[str, StyleProfile] = {}
        self._edits: list[EditDiffEntry] = []
        self._feedback: list[ExplicitFeedback] = []
        self._golden: list[GoldenSample] = []
        self._ledger: list[CostLedgerEntry] = []
        self._overrides: list[OverrideRecord] = []
        self._runs: dict[str, PipelineRun] = {}

    async def read_profile(self, category: str) -> StyleProfile | None:
        profile = self._profiles.get(category)
        return profile.model_copy(deep=True) if profile else None

    async def write_profile(self, profile: StyleProfile) -> None:
        self._profiles[profile.category] = profile.model_copy(deep=True)

    async def append_edit(self, entry: EditDiffEntry, keep_last: int | None = None) -> None:
        self._edits.append(entry.model_copy(deep=True))
        if keep_last is not None and len(self._edits) > keep_last:
            del self._edits[: len(self._edits) - keep_last]

    async def read_edits(self, limit: int) -> list[EditDiffEntry]:
        if limit <= 0:
            return []
        return [e.model_copy(deep=True) for e in self._edits[-limit:]]

    async def append_feedback(self, feedback: ExplicitFeedback) -> None:
        self._feedback.append(feedback.model_copy(deep=True))

    async def read_feedback(self) -> list[ExplicitFeedback]:
        return [f.model_copy(deep=True) for f in self._feedback]

    async def read_golden_samples(self) -> list[GoldenSample]:
        return [s.model_copy(deep=True) for s in self._golden]

    async def replace_golden_samples(self, samples: list[GoldenSample]) -> None:
        self._golden = [s.model_copy(deep=True) for s in samples]

    async def append_ledger_entry(self, entry: CostLedgerEntry) -> None:
        self._ledger.append(entry.model_copy(deep=True))

    async def read_ledger_entries(self, since: datetime | None = None) -> list[CostLedgerEntry]:
        return [
            e.model_copy(deep=True)
            for e in self._ledger
            if since is None or e.timestamp >= since
        ]

    async def append_override(self, record: OverrideRecord) -> None:
        self._overrides.append(record.model_copy(deep=True))

    async def read_overrides(self) -> list[OverrideRecord]:
        return [r.model_copy(deep=True) for r in self._overrides]

    async def append_run(self, run: PipelineRun) -> None:
        self._runs[run.run_id] = run.model_copy(deep=True)

    async def read_run(self, run_id: str) -> PipelineRun | None:
        run = self._runs.get(run_id)
        return run.model_copy(deep=True) if run else None
