# src/storage/store_factory.py - v1
"""Factory for persistent store instantiation."""

from __future__ import annotations

from draftsmith.config.settings import Settings
from draftsmith.storage.base_store import BaseStore


def create_store(settings: Settings | None = None) -> BaseStore:
    """Instantiate the configured store backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.
    """
    backend = "memory" if settings is None else settings.store_backend

    if backend == "memory":
        from draftsmith.storage.memory_store import MemoryStore
        return MemoryStore()

    if backend == "sqlite":
        from draftsmith.storage.sqlite_store import SqliteStore
        return SqliteStore(db_path=settings.store_path)

    raise ValueError(f"Unsupported store backend: {backend!r}")
