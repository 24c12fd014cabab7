# src/api/facade.py - v2
"""Public API facade: wires settings, store, services and the orchestrator.

Usage:
    from draftsmith.api.facade import Draftsmith
    app = Draftsmith.from_settings()
    await app.start()
    handle = await app.submit(GenerationRequest(requester_id="me", job=job))
    run = await handle.result()
    await app.close()
"""

from __future__ import annotations

import logging

from draftsmith.collaborators.job_analyzer import BaseJobAnalyzer, HeuristicJobAnalyzer
from draftsmith.collaborators.risk_scanner import BaseRiskScanner, PhraseRiskScanner
from draftsmith.config.settings import Settings
from draftsmith.core.clock import Clock, SystemClock
from draftsmith.core.models import (
    EditDiffEntry,
    ExplicitFeedback,
    GenerationRequest,
    GoldenSample,
    JobInput,
    PipelineRun,
    SectionCategory,
    StyleProfile,
)
from draftsmith.llm.base_client import BaseGenerationClient
from draftsmith.pipeline.events import EventBus
from draftsmith.pipeline.orchestrator import PipelineOrchestrator, RunHandle
from draftsmith.pipeline.stages.analyze_job import AnalyzeJobStage
from draftsmith.pipeline.stages.generate import GenerateStage
from draftsmith.pipeline.stages.load_style import LoadStyleStage
from draftsmith.pipeline.stages.scan_risk import ScanRiskStage
from draftsmith.pipeline.stages.select_template import SelectTemplateStage
from draftsmith.prompt.context_builder import ContextBuilder
from draftsmith.prompt.templates import TemplateLibrary
from draftsmith.resilience.circuit_breaker import BreakerRegistry, GlobalCircuitBreaker
from draftsmith.storage.base_store import BaseStore
from draftsmith.storage.store_factory import create_store
from draftsmith.style.engine import ProfileLoad, StyleLearningEngine
from draftsmith.tracking.cost_ledger import CostLedger
from draftsmith.tracking.models import BudgetStatus, LedgerTotals

logger = logging.getLogger(__name__)


class Draftsmith:
    """Application object owning one orchestrator and one style engine."""

    def __init__(
        self,
        settings: Settings,
        client: BaseGenerationClient,
        store: BaseStore,
        job_analyzer: BaseJobAnalyzer | None = None,
        risk_scanner: BaseRiskScanner | None = None,
        templates: TemplateLibrary | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.clock = clock or SystemClock()
        self.bus = EventBus()
        self.templates = templates or TemplateLibrary()
        self.engine = StyleLearningEngine.from_settings(store, settings, clock=self.clock)
        self.ledger = CostLedger.from_settings(store, settings, clock=self.clock)
        self.breakers = BreakerRegistry.from_settings(settings, clock=self.clock)
        self.global_breaker = GlobalCircuitBreaker(
            consecutive_threshold=settings.global_breaker_consecutive_failures,
            pause_s=settings.global_breaker_pause_s,
            window_s=settings.global_breaker_window_s,
            clock=self.clock,
        )
        generate = GenerateStage(
            client,
            ContextBuilder.from_settings(settings),
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            flush_interval_s=settings.stream_flush_interval_ms / 1000,
            queue_size=settings.stream_queue_size,
        )
        self.orchestrator = PipelineOrchestrator.from_settings(
            settings,
            phase_one=[
                AnalyzeJobStage(job_analyzer or HeuristicJobAnalyzer()),
                LoadStyleStage(self.engine, category=settings.style_category),
            ],
            phase_two=[
                SelectTemplateStage(self.templates),
                generate,
                ScanRiskStage(risk_scanner or PhraseRiskScanner()),
            ],
            store=store,
            ledger=self.ledger,
            breakers=self.breakers,
            global_breaker=self.global_breaker,
            bus=self.bus,
            clock=self.clock,
        )
        self._started = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        client: BaseGenerationClient | None = None,
        store: BaseStore | None = None,
        clock: Clock | None = None,
    ) -> Draftsmith:
        """Build the application from settings (loaded from .env if None)."""
        settings = settings or Settings()
        if client is None:
            from draftsmith.llm.client_factory import create_generation_client

            client = create_generation_client(settings)
        return cls(settings, client, store or create_store(settings), clock=clock)

    async def start(self) -> None:
        """Load ledger sums and subscribe the style engine to run completions."""
        if self._started:
            return
        await self.ledger.load()
        self.engine.attach(self.bus)
        self._started = True
        logger.info("draftsmith started (store=%s)", self.settings.store_backend)

    async def close(self) -> None:
        """Wait for background work, then release the store."""
        await self.bus.drain()
        await self.engine.wait_idle()
        self.engine.detach(self.bus)
        close = getattr(self.store, "close", None)
        if close is not None:
            close()
        self._started = False

    async def __aenter__(self) -> Draftsmith:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # --- Generation ---

    async def submit(self, request: GenerationRequest) -> RunHandle:
        if not self._started:
            await self.start()
        return await self.orchestrator.submit(request)

    async def generate(
        self,
        job: JobInput,
        requester_id: str = "local",
        template_id: str | None = None,
        budget_override: bool = False,
        pause_override: bool = False,
        override_reason: str = "",
    ) -> PipelineRun:
        """Submit a job and wait for its terminal run."""
        handle = await self.submit(GenerationRequest(
            requester_id=requester_id,
            job=job,
            template_id=template_id,
            budget_override=budget_override,
            pause_override=pause_override,
            override_reason=override_reason,
        ))
        return await handle.result()

    async def get_run(self, run_id: str) -> PipelineRun | None:
        return await self.store.read_run(run_id)

    # --- Style learning ---

    async def record_edit(
        self, proposal_id: str, section: SectionCategory, before: str, after: str
    ) -> EditDiffEntry | None:
        return await self.engine.record_edit(proposal_id, section, before, after)

    async def record_feedback(self, feedback: ExplicitFeedback) -> None:
        await self.engine.record_feedback(feedback)

    async def set_golden_samples(self, texts: list[str]) -> list[GoldenSample]:
        return await self.engine.set_golden_samples(texts)

    async def profile(self) -> ProfileLoad:
        return await self.engine.load_profile()

    async def recompute_profile(self) -> StyleProfile:
        return await self.engine.recompute()

    # --- Budget ---

    def budget_status(self) -> BudgetStatus:
        return self.ledger.check()

    def ledger_totals(self) -> LedgerTotals:
        return self.ledger.totals
