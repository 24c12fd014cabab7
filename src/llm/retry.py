# src/llm/retry.py - v1
"""Stage retry policy: fixed backoff, retry only timeouts and transient errors.

Also classifies foreign exceptions (SDK, network) into the pipeline taxonomy
so the runner and the global breaker see a uniform error type.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from draftsmith.core.errors import (
    CancellationRequested,
    PipelineError,
    StageTimeoutError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)


class RetryExhausted(Exception):
    """A call failed and no retry is left (or the error is not retryable)."""

    def __init__(self, name: str, error_type: str, attempts: int, last_error: Exception):
        self.name = name
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"'{name}' failed after {attempts} attempt(s) ({error_type}): {last_error}"
        )

    @property
    def retries(self) -> int:
        return max(0, self.attempts - 1)


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for one call site."""

    max_retries: int = 1
    base_delay_s: float = 1.0
    backoff_factor: float = 1.0
    jitter: bool = False


STAGE_RETRY = RetryConfig(max_retries=1, base_delay_s=1.0)


def classify_error(error: BaseException) -> str:
    """Classify an exception into a retry error type.

    Returns one of: cancelled, timeout, server_error, transient, permanent.
    """
    if isinstance(error, CancellationRequested):
        return "cancelled"
    if isinstance(error, (StageTimeoutError, asyncio.TimeoutError)):
        return "timeout"
    if isinstance(error, TransientServiceError):
        return "server_error" if error.server_class else "transient"
    if isinstance(error, PipelineError):
        return "transient" if error.retryable else "permanent"

    msg = str(error).lower()
    name = type(error).__name__.lower()
    if "timeout" in name or "timed out" in msg:
        return "timeout"
    if any(c in msg for c in ("500", "502", "503", "504", "529", "overloaded", "unavailable")):
        return "server_error"
    if "connection" in name or "connection" in msg:
        return "server_error"
    return "permanent"


def is_retryable(error: BaseException) -> bool:
    return classify_error(error) in {"timeout", "server_error", "transient"}


def is_server_class(error: BaseException) -> bool:
    """Server/unavailable class: the only kind the global breaker counts."""
    return classify_error(error) == "server_error"


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay before retry number `attempt` (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[[], Awaitable[Any]],
    *,
    name: str = "unknown",
    config: RetryConfig = STAGE_RETRY,
    on_failure: Callable[[Exception, int], None] | None = None,
) -> tuple[Any, int]:
    """Execute an async callable with retry logic.

    Args:
        fn: Zero-argument coroutine factory, called once per attempt.
        name: Call-site name for logs and errors.
        config: Retry configuration.
        on_failure: Called with (error, attempt) after every failed attempt.

    Returns:
        (result, retry_count)

    Raises:
        CancellationRequested: Propagated immediately, never retried.
        RetryExhausted: When retries are exhausted or the error is permanent.
    """
    attempts = 0
    while True:
        try:
            return await fn(), attempts
        except CancellationRequested:
            raise
        except Exception as e:
            attempts += 1
            error_type = classify_error(e)
            if on_failure is not None:
                on_failure(e, attempts)

            if not is_retryable(e) or attempts > config.max_retries:
                raise RetryExhausted(name, error_type, attempts, e) from e

            delay = compute_delay(config, attempts - 1)
            logger.warning(
                "'%s' - %s (attempt %d/%d), retrying in %.1fs",
                name, error_type, attempts, config.max_retries + 1, delay,
            )
            await asyncio.sleep(delay)
