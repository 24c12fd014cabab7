# src/pipeline/stages/scan_risk.py - v1
"""Phase 2: risk scan of the draft. Falls back to an unscanned report."""

from __future__ import annotations

from draftsmith.collaborators.risk_scanner import BaseRiskScanner
from draftsmith.core.models import MARKER_UNSCANNED, STAGE_SCAN_RISK, RiskReport, StageResult
from draftsmith.pipeline.stages.base_stage import BaseStage
from draftsmith.pipeline.state import RunContext


class ScanRiskStage(BaseStage):
    def __init__(self, scanner: BaseRiskScanner) -> None:
        self._scanner = scanner

    @property
    def name(self) -> str:
        return STAGE_SCAN_RISK

    async def execute(self, ctx: RunContext) -> RiskReport:
        return await self._scanner.scan(ctx.output_text)

    def fallback(self, ctx: RunContext, error: Exception) -> RiskReport:
        return RiskReport.unscanned()

    def apply(self, ctx: RunContext, result: StageResult) -> None:
        report: RiskReport = result.payload
        ctx.risk = report
        ctx.run.risk = report
        if report.status == "unscanned":
            ctx.run.add_marker(MARKER_UNSCANNED)
