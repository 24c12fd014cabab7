# tests/unit/pipeline/stages/test_unit_stages.py - v2
"""Tests for the phase 1 and phase 2 stages (execute, fallback, apply)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from draftsmith.collaborators.job_analyzer import HeuristicJobAnalyzer
from draftsmith.core.errors import CancellationRequested, GenerationServiceError, StoreUnavailableError, ValidationError
from draftsmith.core.models import (
    MARKER_DEFAULT_VOICE,
    MARKER_RECALIBRATION,
    MARKER_UNSCANNED,
    GenerationRequest,
    PipelineRun,
    RiskReport,
    StageResult,
    StyleParameters,
    StyleProfile,
)
from draftsmith.pipeline.events import TokenBatch
from draftsmith.pipeline.stages.analyze_job import AnalyzeJobStage
from draftsmith.pipeline.stages.generate import GenerateStage
from draftsmith.pipeline.stages.load_style import LoadStyleStage
from draftsmith.pipeline.stages.scan_risk import ScanRiskStage
from draftsmith.pipeline.stages.select_template import SelectTemplateStage
from draftsmith.pipeline.state import RunContext
from draftsmith.prompt.context_builder import ContextBuilder
from draftsmith.prompt.templates import GENERIC_TEMPLATE, TemplateLibrary
from draftsmith.style.engine import ProfileLoad


@pytest.fixture
def events():
    return []


@pytest.fixture
def ctx(sample_request, events) -> RunContext:
    return RunContext(run=PipelineRun(), request=sample_request, emit=events.append)


def _result(stage, payload, outcome="success") -> StageResult:
    return StageResult(stage=stage.name, outcome=outcome, payload=payload)


class TestAnalyzeJobStage:
    @pytest.mark.asyncio
    async def test_execute_and_apply(self, ctx):
        stage = AnalyzeJobStage(HeuristicJobAnalyzer())
        analysis = await stage.execute(ctx)
        stage.apply(ctx, _result(stage, analysis))
        assert ctx.job_analysis.annotated
        assert "FastAPI" in ctx.job_analysis.key_entities

    def test_fallback_passes_raw_input(self, ctx):
        stage = AnalyzeJobStage(MagicMock())
        analysis = stage.fallback(ctx, TimeoutError())
        assert not analysis.annotated
        assert analysis.raw_text == ctx.request.job.raw_text

    def test_not_critical(self):
        assert AnalyzeJobStage(MagicMock()).critical is False


class TestLoadStyleStage:
    @pytest.mark.asyncio
    async def test_cold_start_marks_default_voice(self, ctx):
        source = MagicMock()
        source.load_profile = AsyncMock(return_value=ProfileLoad(StyleProfile.neutral(), cold_start=True))
        stage = LoadStyleStage(source)
        load = await stage.execute(ctx)
        stage.apply(ctx, _result(stage, load))
        assert ctx.style_is_default
        assert ctx.run.style_version is None
        assert MARKER_DEFAULT_VOICE in ctx.run.markers

    @pytest.mark.asyncio
    async def test_degraded_read_raises(self, ctx):
        source = MagicMock()
        source.load_profile = AsyncMock(return_value=ProfileLoad(StyleProfile.neutral(), degraded=True))
        with pytest.raises(StoreUnavailableError):
            await LoadStyleStage(source).execute(ctx)

    def test_learned_profile_applied(self, ctx):
        profile = StyleProfile(combined=StyleParameters(tone=8.0), version=4, recalibration_needed=True)
        stage = LoadStyleStage(MagicMock())
        stage.apply(ctx, _result(stage, ProfileLoad(profile)))
        assert ctx.style.tone == 8.0
        assert not ctx.style_is_default
        assert ctx.run.style_version == 4
        assert ctx.run.markers == [MARKER_RECALIBRATION]

    def test_fallback_is_neutral(self, ctx):
        stage = LoadStyleStage(MagicMock(), category="dev")
        load = stage.fallback(ctx, StoreUnavailableError("down"))
        assert load.degraded
        assert load.profile.category == "dev"


class TestSelectTemplateStage:
    @pytest.mark.asyncio
    async def test_explicit_template(self, sample_job, events):
        request = GenerationRequest(requester_id="u", job=sample_job, template_id="social_proof")
        ctx = RunContext(run=PipelineRun(), request=request, emit=events.append)
        stage = SelectTemplateStage(TemplateLibrary())
        template = await stage.execute(ctx)
        stage.apply(ctx, _result(stage, template))
        assert ctx.template.template_id == "social_proof"
        assert ctx.run.template_id == "social_proof"

    @pytest.mark.asyncio
    async def test_unknown_template_rejected(self, sample_job, events):
        request = GenerationRequest(requester_id="u", job=sample_job, template_id="nope")
        ctx = RunContext(run=PipelineRun(), request=request, emit=events.append)
        with pytest.raises(ValidationError):
            await SelectTemplateStage(TemplateLibrary()).execute(ctx)

    def test_fallback_generic(self, ctx):
        assert SelectTemplateStage(TemplateLibrary()).fallback(ctx, ValidationError("x")) is GENERIC_TEMPLATE


class TestScanRiskStage:
    @pytest.mark.asyncio
    async def test_scans_output(self, ctx):
        scanner = MagicMock()
        scanner.scan = AsyncMock(return_value=RiskReport(score=0.2, level="low"))
        ctx.output_text = "draft"
        stage = ScanRiskStage(scanner)
        report = await stage.execute(ctx)
        stage.apply(ctx, _result(stage, report))
        scanner.scan.assert_awaited_once_with("draft")
        assert ctx.run.risk.score == 0.2
        assert ctx.run.markers == []

    def test_fallback_marks_unscanned(self, ctx):
        stage = ScanRiskStage(MagicMock())
        stage.apply(ctx, _result(stage, stage.fallback(ctx, TimeoutError()), "fallback"))
        assert ctx.run.risk.status == "unscanned"
        assert MARKER_UNSCANNED in ctx.run.markers


class TestGenerateStage:
    def _stage(self, client, **kwargs) -> GenerateStage:
        return GenerateStage(client, ContextBuilder(), flush_interval_s=0.005, **kwargs)

    @pytest.mark.asyncio
    async def test_streams_and_batches(self, ctx, events, fake_client):
        stage = self._stage(fake_client)
        output = await stage.execute(ctx)
        stage.apply(ctx, _result(stage, output))
        batches = [e for e in events if isinstance(e, TokenBatch)]
        assert batches
        assert "".join(b.text for b in batches).strip() == output.text
        assert [b.sequence for b in batches] == list(range(1, len(batches) + 1))
        assert ctx.run.output_text == output.text
        assert ctx.partial_text.strip() == output.text
        assert output.usage.total_tokens == 1500
        assert not output.usage_estimated

    @pytest.mark.asyncio
    async def test_job_text_only_in_user_message(self, ctx, fake_client):
        await self._stage(fake_client).execute(ctx)
        prompt = fake_client.prompts[0]
        assert "FastAPI backend" not in prompt.system
        assert "<job_content>" in prompt.messages[0].content
        assert ctx.prompt_bundle is not None

    @pytest.mark.asyncio
    async def test_missing_usage_is_estimated(self, ctx, make_client):
        output = await self._stage(make_client(usage=None)).execute(ctx)
        assert output.usage_estimated
        assert output.usage.input_tokens == ctx.prompt_bundle.estimated_tokens
        assert output.model == "claude-sonnet-4-20250514"

    @pytest.mark.asyncio
    async def test_empty_completion_fails(self, ctx, make_client):
        with pytest.raises(GenerationServiceError):
            await self._stage(make_client(fragments=["  "])).execute(ctx)

    @pytest.mark.asyncio
    async def test_cancel_keeps_partial_text(self, ctx, events, make_client):
        def emit(event):
            events.append(event)
            if isinstance(event, TokenBatch):
                ctx.cancel_event.set()

        ctx.emit = emit
        stage = self._stage(make_client(delay_s=0.01))
        with pytest.raises(CancellationRequested):
            await stage.execute(ctx)
        assert ctx.partial_text
        assert len(ctx.partial_text) < len("".join(make_client().fragments))

    @pytest.mark.asyncio
    async def test_retry_publishes_only_undelivered_text(self, ctx, events, fake_client):
        ctx.streamed_text = "Your launch date "
        ctx.stream_sequence = 2
        stage = self._stage(fake_client)
        output = await stage.execute(ctx)
        batches = [e for e in events if isinstance(e, TokenBatch)]
        assert batches
        assert "Your launch date " + "".join(b.text for b in batches) == output.text
        assert [b.sequence for b in batches] == list(range(3, len(batches) + 3))
        assert ctx.streamed_text == output.text
        assert ctx.stream_sequence == batches[-1].sequence

    @pytest.mark.asyncio
    async def test_retry_rewriting_delivered_text_fails(self, ctx, events, fake_client):
        ctx.streamed_text = "Dear hiring manager, "
        with pytest.raises(GenerationServiceError, match="diverged"):
            await self._stage(fake_client).execute(ctx)
        assert not [e for e in events if isinstance(e, TokenBatch)]
        assert ctx.partial_text == "Dear hiring manager, "

    @pytest.mark.asyncio
    async def test_retry_shorter_than_delivered_text_fails(self, ctx, make_client):
        ctx.streamed_text = "Your launch date is close"
        with pytest.raises(GenerationServiceError, match="ended before"):
            await self._stage(make_client(fragments=["Your ", "launch "])).execute(ctx)
        assert ctx.partial_text == "Your launch date is close"

    def test_is_critical(self, fake_client):
        stage = self._stage(fake_client)
        assert stage.critical
        with pytest.raises(NotImplementedError):
            stage.fallback(None, RuntimeError())
