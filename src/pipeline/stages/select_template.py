# src/pipeline/stages/select_template.py - v1
"""Phase 2: template selection. Falls back to the generic template."""

from __future__ import annotations

from draftsmith.collaborators.job_analyzer import passthrough_analysis
from draftsmith.core.models import STAGE_SELECT_TEMPLATE, StageResult, Template
from draftsmith.pipeline.stages.base_stage import BaseStage
from draftsmith.pipeline.state import RunContext
from draftsmith.prompt.templates import GENERIC_TEMPLATE, TemplateLibrary


class SelectTemplateStage(BaseStage):
    def __init__(self, library: TemplateLibrary) -> None:
        self._library = library

    @property
    def name(self) -> str:
        return STAGE_SELECT_TEMPLATE

    async def execute(self, ctx: RunContext) -> Template:
        analysis = ctx.job_analysis or passthrough_analysis(ctx.request.job)
        return self._library.select(analysis, ctx.request.template_id)

    def fallback(self, ctx: RunContext, error: Exception) -> Template:
        return GENERIC_TEMPLATE

    def apply(self, ctx: RunContext, result: StageResult) -> None:
        ctx.template = result.payload
        ctx.run.template_id = result.payload.template_id
