# src/logging/context.py - v1
"""Contextual logging support - attach run_id, requester and stage to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per pipeline run.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_requester_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "requester_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    requester_id: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        requester_id=_requester_id.get(),
        stage=_stage.get(),
    )


def set_run_context(run_id: str, requester_id: str) -> None:
    """Set run-level context (called once per pipeline run task)."""
    _run_id.set(run_id)
    _requester_id.set(requester_id)


def set_stage_context(stage: str | None) -> None:
    """Set stage-level context (called per stage execution)."""
    _stage.set(stage)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _requester_id.set(None)
    _stage.set(None)
