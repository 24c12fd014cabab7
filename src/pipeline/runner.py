# src/pipeline/runner.py - v3
"""Stage runner: breaker check, timeout, retry and fallback for one stage.

Every stage goes through the same path:
  1. the stage breaker is consulted; an open breaker skips straight to the
     fallback (or fails a critical stage) without calling the stage
  2. the stage runs under its timeout; timeouts and transient errors are
     retried once with fixed backoff, re-consulting the breaker first
  3. each failed attempt is recorded on the stage breaker and the global
     breaker; success resets both
  4. when attempts are exhausted the fallback payload is used, or the
     stage is reported failed if it is critical
Cancellation is never retried and propagates to the orchestrator; a
half-open trial interrupted by it is handed back to the breaker.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from draftsmith.core.errors import CancellationRequested, CircuitOpenError, StageTimeoutError
from draftsmith.core.models import StageError, StageResult
from draftsmith.llm.retry import STAGE_RETRY, RetryConfig, RetryExhausted, is_server_class, with_retry
from draftsmith.logging.context import set_stage_context
from draftsmith.pipeline.events import StageProgress
from draftsmith.pipeline.stages.base_stage import BaseStage
from draftsmith.pipeline.state import RunContext
from draftsmith.resilience.circuit_breaker import BreakerRegistry, GlobalCircuitBreaker

logger = logging.getLogger(__name__)

DEFAULT_STAGE_TIMEOUT_S = 30.0


class StageRunner:
    """Executes stages against a RunContext with uniform resilience.

    Args:
        breakers: Per-stage breaker registry.
        global_breaker: Admission breaker fed with server-class failures.
        retry_config: Retry policy applied to every stage.
        timeout_for: Callable(stage_name) -> timeout in seconds.
    """

    def __init__(
        self,
        breakers: BreakerRegistry,
        global_breaker: GlobalCircuitBreaker,
        retry_config: RetryConfig = STAGE_RETRY,
        timeout_for: Callable[[str], float] | None = None,
    ) -> None:
        self._breakers = breakers
        self._global = global_breaker
        self._retry = retry_config
        self._timeout_for = timeout_for or (lambda _stage: DEFAULT_STAGE_TIMEOUT_S)

    async def run(self, stage: BaseStage, ctx: RunContext) -> StageResult:
        """Run one stage and return its result; payload is applied to ctx.

        Raises:
            CancellationRequested: The run was cancelled during the stage.
        """
        name = stage.name
        breaker = self._breakers.get(name)
        ctx.current_stage = name
        set_stage_context(name)
        start = time.monotonic()

        if not breaker.allow_request():
            error = CircuitOpenError(name, breaker.retry_after())
            logger.warning("Stage '%s' skipped: breaker open", name)
            return self._conclude(stage, ctx, error, start, retries=0, skipped=True)

        ctx.emit(StageProgress(run_id=ctx.run_id, stage=name, status="started"))
        timeout_s = self._timeout_for(name)
        attempt = 0

        async def call():
            nonlocal attempt
            attempt += 1
            if attempt > 1 and not breaker.allow_request():
                raise CircuitOpenError(name, breaker.retry_after())
            try:
                return await asyncio.wait_for(stage.execute(ctx), timeout_s)
            except asyncio.TimeoutError as e:
                raise StageTimeoutError(name, timeout_s) from e

        def on_failure(error: Exception, _attempt: int) -> None:
            if isinstance(error, CircuitOpenError):
                return
            breaker.record_failure()
            self._global.record_failure(server_class=is_server_class(error), stage=name)

        try:
            payload, retries = await with_retry(
                call, name=name, config=self._retry, on_failure=on_failure
            )
        except CancellationRequested:
            logger.info("Stage '%s' interrupted by cancellation", name)
            breaker.release_trial()
            raise
        except asyncio.CancelledError:
            breaker.release_trial()
            raise
        except RetryExhausted as e:
            return self._conclude(stage, ctx, e.last_error, start, retries=e.retries)
        finally:
            set_stage_context(None)

        breaker.record_success()
        self._global.record_success(name)
        result = StageResult(
            stage=name,
            outcome="success",
            payload=payload,
            retry_count=retries,
            elapsed_ms=_elapsed_ms(start),
        )
        stage.apply(ctx, result)
        ctx.emit(StageProgress(
            run_id=ctx.run_id, stage=name, status="success",
            elapsed_ms=result.elapsed_ms, retry_count=retries,
        ))
        logger.debug(
            "Stage '%s' succeeded", name,
            extra=_log_fields(name, "success", retries, result.elapsed_ms),
        )
        return result

    def _conclude(
        self,
        stage: BaseStage,
        ctx: RunContext,
        error: Exception,
        start: float,
        retries: int,
        skipped: bool = False,
    ) -> StageResult:
        """Build the fallback or failed result for a stage that did not succeed."""
        detail = _stage_error(error)
        elapsed = _elapsed_ms(start)
        if stage.critical:
            logger.error(
                "Critical stage '%s' failed: %s", stage.name, error,
                extra=_log_fields(stage.name, "failed", retries, elapsed),
            )
            result = StageResult(
                stage=stage.name, outcome="failed", retry_count=retries,
                elapsed_ms=elapsed, error=detail, skipped_by_breaker=skipped,
            )
            status = "skipped" if skipped else "failed"
        else:
            logger.warning(
                "Stage '%s' fell back: %s", stage.name, error,
                extra=_log_fields(stage.name, "fallback", retries, elapsed),
            )
            result = StageResult(
                stage=stage.name, outcome="fallback", payload=stage.fallback(ctx, error),
                retry_count=retries, elapsed_ms=elapsed, error=detail, skipped_by_breaker=skipped,
            )
            stage.apply(ctx, result)
            status = "skipped" if skipped else "fallback"
        ctx.emit(StageProgress(
            run_id=ctx.run_id, stage=stage.name, status=status,
            elapsed_ms=elapsed, retry_count=retries,
        ))
        return result


def _stage_error(error: Exception) -> StageError:
    return StageError(
        kind=getattr(error, "kind", type(error).__name__),
        message=str(error),
        retryable=bool(getattr(error, "retryable", False)),
    )


def _log_fields(stage: str, outcome: str, retries: int, elapsed_ms: int) -> dict:
    return {"stage": stage, "outcome": outcome, "retry_count": retries, "elapsed_ms": elapsed_ms}


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
