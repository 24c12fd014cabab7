# src/storage/sqlite_store.py - v1
"""SQLite-backed store (STORE_BACKEND=sqlite).

Uses stdlib sqlite3. Each record is kept as its pydantic JSON dump in a
`data` column, with a few indexed columns for ordering and lookup. One
statement plus commit per write keeps every call atomic.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from draftsmith.core.errors import StoreUnavailableError
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

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    category TEXT PRIMARY KEY,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS edits (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id TEXT NOT NULL,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS feedback (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS golden_samples (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS ledger (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT NOT NULL,
    ts TEXT NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_ledger_ts ON ledger(ts);
CREATE TABLE IF NOT EXISTS overrides (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS runs (
    run_id TEXT PRIMARY KEY,
    data TEXT NOT NULL
);
"""

# Stage payloads are in-memory objects; persisted runs keep outcomes only.
_RUN_EXCLUDE = {"stage_results": {"__all__": {"payload"}}}


class SqliteStore(BaseStore):
    """SQLite-backed persistent store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser() if str(db_path) != ":memory:" else None
        try:
            if self._db_path is not None:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path or ":memory:"))
            if self._db_path is not None:
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailableError(f"Cannot open store at {db_path}: {e}") from e

    @contextmanager
    def _guard(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
        except sqlite3.Error as e:
            logger.error("Store operation '%s' failed: %s", operation, e)
            raise StoreUnavailableError(f"Store operation '{operation}' failed: {e}") from e

    def _write(self, operation: str, sql: str, params: tuple) -> None:
        with self._guard(operation) as conn:
            with conn:
                conn.execute(sql, params)

    def _read_all(self, operation: str, sql: str, params: tuple = ()) -> list[dict]:
        with self._guard(operation) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [json.loads(row[0]) for row in rows]

    # --- Style profile ---

    async def read_profile(self, category: str) -> StyleProfile | None:
        rows = self._read_all(
            "read_profile", "SELECT data FROM profiles WHERE category = ?", (category,)
        )
        return StyleProfile.model_validate(rows[0]) if rows else None

    async def write_profile(self, profile: StyleProfile) -> None:
        self._write(
            "write_profile",
            "INSERT OR REPLACE INTO profiles (category, data) VALUES (?, ?)",
            (profile.category, profile.model_dump_json()),
        )

    # --- Learning signals ---

    async def append_edit(self, entry: EditDiffEntry, keep_last: int | None = None) -> None:
        with self._guard("append_edit") as conn:
            with conn:
                conn.execute(
                    "INSERT INTO edits (entry_id, data) VALUES (?, ?)",
                    (entry.entry_id, entry.model_dump_json()),
                )
                if keep_last is not None:
                    conn.execute(
                        "DELETE FROM edits WHERE seq NOT IN "
                        "(SELECT seq FROM edits ORDER BY seq DESC LIMIT ?)",
                        (keep_last,),
                    )

    async def read_edits(self, limit: int) -> list[EditDiffEntry]:
        if limit <= 0:
            return []
        rows = self._read_all(
            "read_edits",
            "SELECT data FROM (SELECT seq, data FROM edits ORDER BY seq DESC LIMIT ?) ORDER BY seq ASC",
            (limit,),
        )
        return [EditDiffEntry.model_validate(r) for r in rows]

    async def append_feedback(self, feedback: ExplicitFeedback) -> None:
        self._write(
            "append_feedback",
            "INSERT INTO feedback (data) VALUES (?)",
            (feedback.model_dump_json(),),
        )

    async def read_feedback(self) -> list[ExplicitFeedback]:
        rows = self._read_all("read_feedback", "SELECT data FROM feedback ORDER BY seq")
        return [ExplicitFeedback.model_validate(r) for r in rows]

    async def read_golden_samples(self) -> list[GoldenSample]:
        rows = self._read_all("read_golden_samples", "SELECT data FROM golden_samples ORDER BY seq")
        return [GoldenSample.model_validate(r) for r in rows]

    async def replace_golden_samples(self, samples: list[GoldenSample]) -> None:
        with self._guard("replace_golden_samples") as conn:
            with conn:
                conn.execute("DELETE FROM golden_samples")
                conn.executemany(
                    "INSERT INTO golden_samples (data) VALUES (?)",
                    [(s.model_dump_json(),) for s in samples],
                )

    # --- Cost ledger / audit ---

    async def append_ledger_entry(self, entry: CostLedgerEntry) -> None:
        self._write(
            "append_ledger_entry",
            "INSERT INTO ledger (run_id, ts, data) VALUES (?, ?, ?)",
            (entry.run_id, entry.timestamp.isoformat(), entry.model_dump_json()),
        )

    async def read_ledger_entries(self, since: datetime | None = None) -> list[CostLedgerEntry]:
        rows = self._read_all("read_ledger_entries", "SELECT data FROM ledger ORDER BY seq")
        entries = [CostLedgerEntry.model_validate(r) for r in rows]
        if since is None:
            return entries
        return [e for e in entries if e.timestamp >= since]

    async def append_override(self, record: OverrideRecord) -> None:
        self._write(
            "append_override",
            "INSERT INTO overrides (data) VALUES (?)",
            (record.model_dump_json(),),
        )

    async def read_overrides(self) -> list[OverrideRecord]:
        rows = self._read_all("read_overrides", "SELECT data FROM overrides ORDER BY seq")
        return [OverrideRecord.model_validate(r) for r in rows]

    # --- Runs ---

    async def append_run(self, run: PipelineRun) -> None:
        self._write(
            "append_run",
            "INSERT OR REPLACE INTO runs (run_id, data) VALUES (?, ?)",
            (run.run_id, run.model_dump_json(exclude=_RUN_EXCLUDE)),
        )

    async def read_run(self, run_id: str) -> PipelineRun | None:
        rows = self._read_all("read_run", "SELECT data FROM runs WHERE run_id = ?", (run_id,))
        return PipelineRun.model_validate(rows[0]) if rows else None

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
