# src/logging/logger.py - v2
"""Log formatters for pipeline runs.

Both formatters stamp every record with the run context (run, requester,
stage) and with the per-stage fields the runner passes through `extra=`:
retry_count, elapsed_ms and outcome. A stage given in `extra` wins over the
context stage, which is already cleared when the runner reports a result.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from draftsmith.logging.context import get_context

STAGE_FIELDS = ("retry_count", "elapsed_ms", "outcome")


def _run_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = get_context().as_dict()
    stage = getattr(record, "stage", None)
    if stage:
        fields["stage"] = stage
    for name in STAGE_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            fields[name] = value
    return fields


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; run fields sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_run_fields(record))
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Console format, e.g.

    2026-03-15 12:00:00 WARNING  pipeline.runner run=1a2b3c4d by=user-1 generate retry=1 812ms - ...
    """

    def format(self, record: logging.LogRecord) -> str:
        fields = _run_fields(record)
        parts = [
            _timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"{record.levelname:8s}",
            record.name.removeprefix("draftsmith."),
        ]
        if "run_id" in fields:
            parts.append(f"run={fields['run_id'][:8]}")
        if "requester_id" in fields:
            parts.append(f"by={fields['requester_id']}")
        if "stage" in fields:
            parts.append(fields["stage"])
        if "outcome" in fields:
            parts.append(f"-> {fields['outcome']}")
        if fields.get("retry_count"):
            parts.append(f"retry={fields['retry_count']}")
        if "elapsed_ms" in fields:
            parts.append(f"{fields['elapsed_ms']}ms")
        line = " ".join(parts) + f" - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """Configure the `draftsmith` logger tree.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: "json" or "text".
        log_file: Also write to this file with size rotation (None = stderr only).
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
    """
    root_logger = logging.getLogger("draftsmith")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Re-running setup replaces the handlers instead of stacking them.
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        from draftsmith.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(log_file, rotation=rotation, retention=retention)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
