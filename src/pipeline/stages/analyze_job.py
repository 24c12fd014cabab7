# src/pipeline/stages/analyze_job.py - v1
"""Phase 1: job analysis. Falls back to the raw input, unannotated."""

from __future__ import annotations

from draftsmith.collaborators.job_analyzer import BaseJobAnalyzer, passthrough_analysis
from draftsmith.core.models import STAGE_ANALYZE_JOB, JobAnalysis, StageResult
from draftsmith.pipeline.stages.base_stage import BaseStage
from draftsmith.pipeline.state import RunContext


class AnalyzeJobStage(BaseStage):
    def __init__(self, analyzer: BaseJobAnalyzer) -> None:
        self._analyzer = analyzer

    @property
    def name(self) -> str:
        return STAGE_ANALYZE_JOB

    async def execute(self, ctx: RunContext) -> JobAnalysis:
        return await self._analyzer.analyze(ctx.request.job)

    def fallback(self, ctx: RunContext, error: Exception) -> JobAnalysis:
        return passthrough_analysis(ctx.request.job)

    def apply(self, ctx: RunContext, result: StageResult) -> None:
        ctx.job_analysis = result.payload
