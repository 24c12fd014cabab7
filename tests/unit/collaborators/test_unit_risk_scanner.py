# tests/unit/collaborators/test_unit_risk_scanner.py - v1
"""Tests for collaborators/risk_scanner.py."""

from __future__ import annotations

import pytest

from draftsmith.collaborators.risk_scanner import PhraseRiskScanner
from draftsmith.core.models import RiskReport


class TestPhraseRiskScanner:
    @pytest.mark.asyncio
    async def test_clean_text(self):
        report = await PhraseRiskScanner().scan("I fixed a slow API last month.")
        assert report.status == "scanned"
        assert report.level == "low"
        assert report.flagged == []
        assert report.score == 0.0

    @pytest.mark.asyncio
    async def test_flags_tells_and_hedging(self):
        text = "We leverage robust tools. It's important to note that we delve deep."
        report = await PhraseRiskScanner().scan(text)
        assert [s.reason for s in report.flagged] == ["ai_tell", "ai_tell", "hedging", "ai_tell"]
        assert report.level == "high"
        assert report.score == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_span_offsets(self):
        text = "Teams utilized this"
        report = await PhraseRiskScanner().scan(text)
        span = report.flagged[0]
        assert text[span.start:span.end] == span.text == "utilized"

    @pytest.mark.asyncio
    async def test_medium_level(self):
        report = await PhraseRiskScanner().scan("A holistic and nuanced plan.")
        assert report.level == "medium"

    @pytest.mark.asyncio
    async def test_custom_vocabulary(self):
        report = await PhraseRiskScanner(tells=("synergy",), hedges=()).scan("Synergy! Robust!")
        assert [s.text for s in report.flagged] == ["Synergy"]

    def test_unscanned_report(self):
        report = RiskReport.unscanned()
        assert report.status == "unscanned"
        assert report.level == "unknown"
