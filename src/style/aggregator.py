# src/style/aggregator.py - v1
"""Deterministic aggregation of explicit and implicit style signals.

All sums use math.fsum over inputs in a canonical order, so identical
inputs always give bit-identical parameters.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field

from draftsmith.core.models import (
    STYLE_DIMENSIONS,
    ExplicitFeedback,
    GoldenSample,
    StyleParameters,
)
from draftsmith.style.analyzer import (
    DIMENSION_SPECS,
    MAX_COMMON_PHRASES,
    analyze_text,
    neutral_parameters,
)
from draftsmith.style.decay import WeightedEntry

logger = logging.getLogger(__name__)

MIN_POSITIVE_RATING = 4


@dataclass
class ImplicitAggregate:
    """Implicit-signal parameters plus the sample bookkeeping behind them."""

    parameters: StyleParameters
    proposal_count: int = 0
    entry_count: int = 0
    weight_total: float = 0.0
    proposal_ids: list[str] = field(default_factory=list)


def weighted_mean(samples: list[tuple[StyleParameters, float]]) -> StyleParameters:
    """Weighted per-dimension mean; neutral when there is no positive weight."""
    samples = [(p, w) for p, w in samples if w > 0]
    if not samples:
        return neutral_parameters()
    total = math.fsum(w for _, w in samples)
    values = {
        name: math.fsum(getattr(p, name) * w for p, w in samples) / total
        for name in STYLE_DIMENSIONS
    }
    return StyleParameters(**values, common_phrases=_rank_phrases(samples))


def explicit_parameters(
    golden: list[GoldenSample],
    feedback: list[ExplicitFeedback],
) -> StyleParameters:
    """Explicit signal: golden samples, positive ratings and stated preferences.

    Golden samples weigh 1.0 each, ratings of 4 and 5 weigh rating - 3, and
    the latest stated preference for a dimension overrides the mean.
    """
    samples: list[tuple[StyleParameters, float]] = []
    for sample in sorted(golden, key=lambda s: (s.added_at, s.sample_id)):
        samples.append((analyze_text(sample.text), 1.0))

    ordered = sorted(feedback, key=lambda f: (f.timestamp, f.feedback_id))
    for fb in ordered:
        if fb.kind == "rating" and fb.rating is not None and fb.rating >= MIN_POSITIVE_RATING and fb.text.strip():
            samples.append((analyze_text(fb.text), float(fb.rating - 3)))

    params = weighted_mean(samples)

    preferences: dict[str, float] = {}
    for fb in ordered:
        if fb.kind == "preference" and fb.dimension is not None and fb.value is not None:
            preferences[fb.dimension] = DIMENSION_SPECS[fb.dimension].clamp(fb.value)
    if preferences:
        params = params.model_copy(update=preferences)
    return params


def implicit_parameters(weighted: list[WeightedEntry]) -> ImplicitAggregate:
    """Implicit signal from decay-weighted edit entries.

    Each entry's user-written sentences are analyzed; entries with no
    written text (pure deletions) still count toward section ratios and the
    edited-proposal count.
    """
    samples: list[tuple[StyleParameters, float]] = []
    section_weights: dict[str, list[float]] = defaultdict(list)
    proposals: list[str] = []
    seen: set[str] = set()

    for item in weighted:
        entry = item.entry
        if entry.proposal_id not in seen:
            seen.add(entry.proposal_id)
            proposals.append(entry.proposal_id)
        section_weights[entry.section].append(item.weight * len(entry.edits))
        text = entry.edited_text
        if text.strip():
            samples.append((analyze_text(text), item.weight))

    params = weighted_mean(samples)
    total = math.fsum(math.fsum(ws) for ws in section_weights.values())
    if total > 0:
        ratios = {
            section: math.fsum(section_weights[section]) / total
            for section in sorted(section_weights)
        }
        params = params.model_copy(update={"section_ratios": ratios})

    return ImplicitAggregate(
        parameters=params,
        proposal_count=len(proposals),
        entry_count=len(weighted),
        weight_total=math.fsum(item.weight for item in weighted),
        proposal_ids=proposals,
    )


def combine(
    explicit: StyleParameters,
    implicit: StyleParameters,
    explicit_weight: float,
    implicit_weight: float,
) -> StyleParameters:
    """Blend both signals; explicit phrases rank ahead of implicit ones."""
    values = {
        name: math.fsum([getattr(explicit, name) * explicit_weight, getattr(implicit, name) * implicit_weight])
        for name in STYLE_DIMENSIONS
    }
    phrases: list[str] = []
    sources = [explicit.common_phrases]
    if implicit_weight > 0:
        sources.append(implicit.common_phrases)
    for source in sources:
        for phrase in source:
            if phrase not in phrases:
                phrases.append(phrase)
    section_ratios = implicit.section_ratios if implicit_weight > 0 else {}
    return StyleParameters(
        **values,
        common_phrases=phrases[:MAX_COMMON_PHRASES],
        section_ratios=dict(section_ratios),
    )


def _rank_phrases(samples: list[tuple[StyleParameters, float]]) -> list[str]:
    scores: dict[str, list[float]] = defaultdict(list)
    for params, weight in samples:
        for phrase in params.common_phrases:
            scores[phrase].append(weight)
    ranked = sorted(scores, key=lambda p: (-math.fsum(scores[p]), p))
    return ranked[:MAX_COMMON_PHRASES]
