# src/pipeline/orchestrator.py - v3
"""Pipeline orchestrator: admission, two-phase plan and run lifecycle.

Admission, in order:
  1. global breaker (paused -> CircuitOpenError unless a pause override is
     requested, which is audited and lets exactly this run through)
  2. requester cooldown (one active run, minimum interval between runs)

Plan:
  Phase 1 (parallel): analyze_job + load_style_profile
  Phase 2 (sequential): select_template -> generate -> scan_risk

The cost ledger gates the generate stage; blocked budgets fail the run
without calling the generation service. Each terminal run is appended to
the store and announced on the event bus. The orchestrator only reads the
style profile; recompute is driven by the RunCompleted event.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from draftsmith.config.settings import Settings
from draftsmith.core.clock import Clock, SystemClock
from draftsmith.core.errors import (
    BudgetExceededError,
    CancellationRequested,
    PipelineError,
    StoreUnavailableError,
)
from draftsmith.core.models import (
    MARKER_BUDGET_OVERRIDE,
    MARKER_BUDGET_WARNING,
    MARKER_PAUSE_OVERRIDE,
    STAGE_GENERATE,
    GenerationRequest,
    PipelineRun,
    RunError,
    StageError,
    StageResult,
)
from draftsmith.llm.retry import RetryConfig
from draftsmith.logging.context import clear_context, set_run_context
from draftsmith.pipeline.events import EventBus, PipelineEvent, RunCompleted, RunFailed
from draftsmith.pipeline.runner import StageRunner
from draftsmith.pipeline.stages.base_stage import BaseStage
from draftsmith.pipeline.state import RunContext
from draftsmith.resilience.circuit_breaker import BreakerRegistry, GlobalCircuitBreaker
from draftsmith.resilience.cooldown import CooldownGuard
from draftsmith.storage.base_store import BaseStore
from draftsmith.tracking.cost_ledger import CostLedger

logger = logging.getLogger(__name__)

_TERMINAL_EVENTS = (RunCompleted, RunFailed)


class RunHandle:
    """Caller-side view of one submitted run."""

    def __init__(self, run: PipelineRun, cancel_event: asyncio.Event) -> None:
        self.run_id = run.run_id
        self._run = run
        self._cancel_event = cancel_event
        self._queue: asyncio.Queue[PipelineEvent] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    @property
    def run(self) -> PipelineRun:
        return self._run

    def cancel(self) -> None:
        """Request cooperative cancellation; the run stops at its next checkpoint."""
        if not self._cancel_event.is_set():
            logger.info("Cancellation requested for run %s", self.run_id)
            self._cancel_event.set()

    async def events(self) -> AsyncIterator[PipelineEvent]:
        """Progress events of this run, ending with RunCompleted or RunFailed."""
        while True:
            event = await self._queue.get()
            yield event
            if isinstance(event, _TERMINAL_EVENTS):
                return

    async def result(self) -> PipelineRun:
        """Wait for the run to reach a terminal status."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self._run

    def _deliver(self, event: PipelineEvent) -> None:
        self._queue.put_nowait(event)


class PipelineOrchestrator:
    """Sequences stages for each accepted GenerationRequest.

    Args:
        phase_one: Stages run concurrently before anything else.
        phase_two: Stages run in order once phase 1 has finished.
        runner: StageRunner applying breaker/timeout/retry/fallback.
        store: Persistent store (terminal runs and pause overrides).
        ledger: Cost ledger gating the generate stage.
        global_breaker: Admission breaker.
        cooldown: Per-requester admission guard.
        bus: Event bus receiving every event of every run.
    """

    def __init__(
        self,
        phase_one: list[BaseStage],
        phase_two: list[BaseStage],
        runner: StageRunner,
        store: BaseStore,
        ledger: CostLedger,
        global_breaker: GlobalCircuitBreaker,
        cooldown: CooldownGuard,
        bus: EventBus | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._phase_one = phase_one
        self._phase_two = phase_two
        self._runner = runner
        self._store = store
        self._ledger = ledger
        self._global = global_breaker
        self._cooldown = cooldown
        self.bus = bus or EventBus()
        self._clock = clock or SystemClock()
        self._handles: dict[str, RunHandle] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        phase_one: list[BaseStage],
        phase_two: list[BaseStage],
        store: BaseStore,
        ledger: CostLedger,
        breakers: BreakerRegistry,
        global_breaker: GlobalCircuitBreaker,
        bus: EventBus | None = None,
        clock: Clock | None = None,
    ) -> PipelineOrchestrator:
        runner = StageRunner(
            breakers,
            global_breaker,
            retry_config=RetryConfig(
                max_retries=settings.stage_max_retries,
                base_delay_s=settings.stage_retry_backoff_s,
            ),
            timeout_for=settings.stage_timeout,
        )
        return cls(
            phase_one,
            phase_two,
            runner,
            store,
            ledger,
            global_breaker,
            CooldownGuard(settings.cooldown_seconds, clock=clock),
            bus=bus,
            clock=clock,
        )

    @property
    def active_runs(self) -> list[str]:
        return [run_id for run_id, h in self._handles.items() if not h.run.is_terminal]

    async def submit(self, request: GenerationRequest) -> RunHandle:
        """Admit a request and start its run in the background.

        Raises:
            CircuitOpenError: Global pause active and no override requested.
            CooldownActiveError: Requester has an active run or is cooling down.
        """
        run = PipelineRun(request_id=request.request_id, requester_id=request.requester_id)

        # Every admission check runs before the single-use override is spent.
        self._cooldown.check(request.requester_id)
        override = None
        if self._global.is_paused() and request.pause_override:
            override = self._global.grant_override(request.override_reason, run_id=run.run_id)
        self._global.admit()
        self._cooldown.acquire(request.requester_id, run.run_id)

        if override is not None:
            try:
                await self._store.append_override(override)
            except Exception:
                self._cooldown.release(request.requester_id, run.run_id)
                raise
            run.add_marker(MARKER_PAUSE_OVERRIDE)
            logger.warning("Global pause overridden for run %s", run.run_id)

        cancel_event = asyncio.Event()
        handle = RunHandle(run, cancel_event)
        ctx = RunContext(
            run=run,
            request=request,
            emit=lambda event: self._publish(handle, event),
            cancel_event=cancel_event,
        )
        self._handles[run.run_id] = handle
        handle._task = asyncio.ensure_future(self._execute(ctx, handle))
        logger.info("Run %s accepted for requester %s", run.run_id, request.requester_id)
        return handle

    def get_handle(self, run_id: str) -> RunHandle | None:
        return self._handles.get(run_id)

    # --- Run lifecycle ---

    async def _execute(self, ctx: RunContext, handle: RunHandle) -> None:
        run = ctx.run
        set_run_context(run.run_id, run.requester_id)
        run.started_at = self._clock.now()
        run.transition("running")
        try:
            ctx.check_cancelled()
            await self._run_phase_one(ctx)
            for stage in self._phase_two:
                ctx.check_cancelled()
                if stage.name == STAGE_GENERATE and not await self._authorize_budget(ctx):
                    break
                result = await self._runner.run(stage, ctx)
                run.append_result(result)
                if result.outcome == "failed":
                    break
                if stage.name == STAGE_GENERATE:
                    await self._record_cost(ctx)
            self._finish(ctx)
        except CancellationRequested:
            run.partial_output = ctx.partial_text or ctx.output_text
            run.error = RunError(kind="cancelled", message="Run cancelled", stage=ctx.current_stage)
            run.transition("cancelled")
            logger.info("Run %s cancelled during %s", run.run_id, ctx.current_stage or "admission")
        except Exception as e:
            logger.exception("Run %s crashed: %s", run.run_id, e)
            run.partial_output = ctx.partial_text
            run.error = RunError(
                kind=getattr(e, "kind", type(e).__name__), message=str(e), stage=ctx.current_stage
            )
            run.transition("failed")
        finally:
            run.finished_at = self._clock.now()
            self._cooldown.release(run.requester_id, run.run_id)
            await self._persist(run)
            self._publish(handle, self._terminal_event(run))
            self._handles.pop(run.run_id, None)
            clear_context()

    async def _run_phase_one(self, ctx: RunContext) -> None:
        results = await asyncio.gather(*(self._runner.run(stage, ctx) for stage in self._phase_one))
        for result in results:
            ctx.run.append_result(result)

    async def _authorize_budget(self, ctx: RunContext) -> bool:
        """Consult the ledger before generating; False fails the run."""
        request = ctx.request
        try:
            status = await self._ledger.authorize(
                ctx.run_id, override=request.budget_override, reason=request.override_reason
            )
        except BudgetExceededError as e:
            ctx.run.append_result(StageResult(
                stage=STAGE_GENERATE,
                outcome="failed",
                error=StageError(kind=e.kind, message=str(e)),
            ))
            return False
        if status.level == "warning":
            ctx.run.add_marker(MARKER_BUDGET_WARNING)
        elif status.level == "blocked":
            ctx.run.add_marker(MARKER_BUDGET_OVERRIDE)
        return True

    async def _record_cost(self, ctx: RunContext) -> None:
        if ctx.usage is None:
            return
        await self._ledger.record(ctx.run_id, ctx.usage, ctx.model or "")

    def _finish(self, ctx: RunContext) -> None:
        run = ctx.run
        generated = run.result_for(STAGE_GENERATE)
        if generated is None or generated.outcome == "failed":
            run.partial_output = ctx.partial_text
            detail = generated.error if generated is not None else None
            run.error = RunError(
                kind=detail.kind if detail else "generation_failed",
                message=detail.message if detail else "Generate stage did not run",
                stage=STAGE_GENERATE,
            )
            run.transition("failed")
            logger.warning("Run %s failed: %s", run.run_id, run.error.message)
            return
        status = "degraded" if run.fallback_stages else "completed"
        run.transition(status)
        logger.info(
            "Run %s %s (fallbacks=%s, markers=%s)",
            run.run_id, status, run.fallback_stages or "none", run.markers or "none",
        )

    async def _persist(self, run: PipelineRun) -> None:
        try:
            await self._store.append_run(run)
        except StoreUnavailableError as e:
            logger.error("Could not persist run %s: %s", run.run_id, e)

    @staticmethod
    def _terminal_event(run: PipelineRun) -> PipelineEvent:
        if run.status in ("completed", "degraded"):
            return RunCompleted(run_id=run.run_id, status=run.status, run=run)
        error = run.error or RunError(kind=PipelineError.kind, message="Run failed")
        return RunFailed(run_id=run.run_id, status=run.status, error=error, run=run)

    def _publish(self, handle: RunHandle, event: PipelineEvent) -> None:
        handle._deliver(event)
        self.bus.publish(event)
