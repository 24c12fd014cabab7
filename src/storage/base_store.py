# src/storage/base_store.py - v1
"""Abstract persistent store interface.

Holds style-profile state, edit history, explicit feedback, golden samples,
the cost ledger, override audit records and terminal run records. Every
write is atomic per call. Backends raise StoreUnavailableError on I/O failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
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


class BaseStore(ABC):
    """Unified interface for storage backends."""

    # --- Style profile ---

    @abstractmethod
    async def read_profile(self, category: str) -> StyleProfile | None:
        """Latest profile for a category, or None on cold start."""

    @abstractmethod
    async def write_profile(self, profile: StyleProfile) -> None:
        """Replace the stored profile for `profile.category`."""

    # --- Learning signals ---

    @abstractmethod
    async def append_edit(self, entry: EditDiffEntry, keep_last: int | None = None) -> None:
        """Append an edit-diff entry.

        With `keep_last`, the oldest entries past that cap are discarded in
        the same write.
        """

    @abstractmethod
    async def read_edits(self, limit: int) -> list[EditDiffEntry]:
        """Most recent `limit` entries, oldest first."""

    @abstractmethod
    async def append_feedback(self, feedback: ExplicitFeedback) -> None:
        """Append explicit feedback."""

    @abstractmethod
    async def read_feedback(self) -> list[ExplicitFeedback]:
        """All explicit feedback, oldest first."""

    @abstractmethod
    async def read_golden_samples(self) -> list[GoldenSample]:
        """Current golden set."""

    @abstractmethod
    async def replace_golden_samples(self, samples: list[GoldenSample]) -> None:
        """Replace the golden set wholesale."""

    # --- Cost ledger / audit ---

    @abstractmethod
    async def append_ledger_entry(self, entry: CostLedgerEntry) -> None:
        """Append a ledger entry."""

    @abstractmethod
    async def read_ledger_entries(self, since: datetime | None = None) -> list[CostLedgerEntry]:
        """Ledger entries with timestamp >= `since`, oldest first."""

    @abstractmethod
    async def append_override(self, record: OverrideRecord) -> None:
        """Append an override audit record."""

    @abstractmethod
    async def read_overrides(self) -> list[OverrideRecord]:
        """All override audit records, oldest first."""

    # --- Runs ---

    @abstractmethod
    async def append_run(self, run: PipelineRun) -> None:
        """Persist a terminal run record."""

    @abstractmethod
    async def read_run(self, run_id: str) -> PipelineRun | None:
        """Read a run record by id."""
