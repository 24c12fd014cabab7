# src/pipeline/state.py - v3
"""Per-run mutable context passed to every stage.

The orchestrator owns the RunContext for the lifetime of one run. Stages
read their inputs from it and the orchestrator writes stage payloads back
through BaseStage.apply.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from draftsmith.core.errors import CancellationRequested
from draftsmith.core.models import (
    GenerationRequest,
    JobAnalysis,
    PipelineRun,
    RiskReport,
    StyleParameters,
    Template,
)
from draftsmith.llm.models import TokenUsage

if TYPE_CHECKING:
    from draftsmith.pipeline.events import PipelineEvent
    from draftsmith.prompt.context_builder import PromptBundle
    from draftsmith.style.engine import ProfileLoad


@dataclass
class RunContext:
    """State accumulated across the stages of a single run."""

    run: PipelineRun
    request: GenerationRequest
    emit: Callable[[PipelineEvent], None]
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    # === PHASE 1 ===
    job_analysis: JobAnalysis | None = None
    profile_load: ProfileLoad | None = None
    style: StyleParameters = field(default_factory=StyleParameters)
    style_is_default: bool = True

    # === PHASE 2 ===
    template: Template | None = None
    prompt_bundle: PromptBundle | None = None
    output_text: str = ""
    partial_text: str = ""
    # Text already published as TokenBatch events, across generate attempts.
    streamed_text: str = ""
    stream_sequence: int = 0
    usage: TokenUsage | None = None
    model: str | None = None
    risk: RiskReport | None = None

    current_stage: str | None = None

    @property
    def run_id(self) -> str:
        return self.run.run_id

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def check_cancelled(self) -> None:
        """Cooperative cancellation checkpoint."""
        if self.cancel_event.is_set():
            raise CancellationRequested(f"Run {self.run.run_id} cancelled")
