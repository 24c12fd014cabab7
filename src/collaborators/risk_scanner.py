# src/collaborators/risk_scanner.py - v1
"""Risk-scan collaborator.

PhraseRiskScanner flags words and hedging phrases that read as machine
written. The scan_risk stage only manages timing and fallback around it.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from draftsmith.core.models import RiskReport, RiskSpan

logger = logging.getLogger(__name__)

AI_TELLS: tuple[str, ...] = (
    "delve", "leverage", "utilize", "robust", "multifaceted", "tapestry",
    "holistic", "nuanced", "paradigm shift", "game-changing", "transformative",
    "innovative",
)
HEDGING_PHRASES: tuple[str, ...] = (
    "it's important to note that",
    "it is worth mentioning",
    "in today's landscape",
    "in the ever-evolving",
)

MEDIUM_AT = 2
HIGH_AT = 4
SATURATION = 5


class BaseRiskScanner(ABC):
    """Scores generated text and returns flagged spans."""

    @abstractmethod
    async def scan(self, text: str) -> RiskReport:
        """Scan `text`; raise TransientServiceError when unavailable."""


class PhraseRiskScanner(BaseRiskScanner):
    """Flags known AI-tell words and hedging phrases."""

    def __init__(
        self,
        tells: tuple[str, ...] = AI_TELLS,
        hedges: tuple[str, ...] = HEDGING_PHRASES,
    ) -> None:
        self._patterns: list[tuple[re.Pattern[str], str]] = [
            (re.compile(rf"\b{re.escape(t)}\w*", re.IGNORECASE), "ai_tell") for t in tells
        ] + [
            (re.compile(re.escape(h), re.IGNORECASE), "hedging") for h in hedges
        ]

    async def scan(self, text: str) -> RiskReport:
        spans: list[RiskSpan] = []
        for pattern, reason in self._patterns:
            for match in pattern.finditer(text):
                spans.append(
                    RiskSpan(start=match.start(), end=match.end(), text=match.group(0), reason=reason)
                )
        spans.sort(key=lambda s: (s.start, s.end))

        count = len(spans)
        if count >= HIGH_AT:
            level = "high"
        elif count >= MEDIUM_AT:
            level = "medium"
        else:
            level = "low"
        logger.debug("Risk scan: %d flagged span(s), level=%s", count, level)
        return RiskReport(score=min(1.0, count / SATURATION), level=level, flagged=spans)
