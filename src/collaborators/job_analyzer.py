# src/collaborators/job_analyzer.py - v1
"""Job analysis collaborator.

BaseJobAnalyzer is the narrow interface the analyze_job stage calls.
HeuristicJobAnalyzer is the local default: it merges the structured job
record with capitalized terms from the text and detects implied client
priorities from phrase patterns.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from draftsmith.core.errors import ValidationError
from draftsmith.core.models import JobAnalysis, JobInput

logger = logging.getLogger(__name__)

MAX_KEY_ENTITIES = 12

# Implied priority -> trigger phrases (matched case-insensitively).
HIDDEN_NEED_PATTERNS: dict[str, tuple[str, ...]] = {
    "Time-pressured": ("urgent", "asap", "fast turnaround", "immediately", "deadline"),
    "Risk-averse": ("proven track record", "proven experience", "references", "portfolio", "nda"),
    "Budget-conscious": ("cost-effective", "budget-friendly", "affordable", "low budget"),
    "Long-term partnership": ("ongoing", "monthly retainer", "long-term", "long term"),
    "Burned by junior devs": ("experienced only", "senior developer", "no beginners"),
}

_TERM_RE = re.compile(r"\b(?:[A-Z][a-zA-Z0-9+#.]*[a-zA-Z0-9+#]|[A-Z]{2,})\b")
_STOP_TERMS = frozenset({
    "I", "We", "You", "The", "This", "That", "Our", "My", "Hi", "Hello", "Please",
    "Thanks", "Looking", "Need", "Must", "Will", "If", "It", "And", "For", "A",
})


class BaseJobAnalyzer(ABC):
    """Turns a structured job record into JobAnalysis facts."""

    @abstractmethod
    async def analyze(self, job: JobInput) -> JobAnalysis:
        """Analyze a job; raise ValidationError for unusable input."""


class HeuristicJobAnalyzer(BaseJobAnalyzer):
    """Local, deterministic job analysis."""

    async def analyze(self, job: JobInput) -> JobAnalysis:
        if not job.raw_text.strip():
            raise ValidationError("Job description is empty")

        entities = _dedupe([*job.entities, *job.skills, *extract_terms(job.raw_text)])
        needs = detect_hidden_needs(job.raw_text)
        logger.debug("Job analyzed: %d entities, needs=%s", len(entities), needs)
        return JobAnalysis(
            raw_text=job.raw_text,
            title=job.title,
            key_entities=entities[:MAX_KEY_ENTITIES],
            skills=list(job.skills),
            budget=job.budget,
            hidden_needs=needs,
            annotated=True,
        )


def extract_terms(text: str) -> list[str]:
    """Capitalized words and acronyms, first occurrence order."""
    return _dedupe(t for t in _TERM_RE.findall(text) if t not in _STOP_TERMS)


def detect_hidden_needs(text: str) -> list[str]:
    lowered = text.lower()
    return [
        need for need, phrases in HIDDEN_NEED_PATTERNS.items()
        if any(re.search(rf"\b{re.escape(p)}\b", lowered) for p in phrases)
    ]


def passthrough_analysis(job: JobInput) -> JobAnalysis:
    """Raw input passed through unannotated."""
    return JobAnalysis(
        raw_text=job.raw_text,
        title=job.title,
        key_entities=list(job.entities),
        skills=list(job.skills),
        budget=job.budget,
        annotated=False,
    )


def _dedupe(items) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        key = item.strip().lower()
        if key and key not in seen:
            seen.add(key)
            out.append(item.strip())
    return out
