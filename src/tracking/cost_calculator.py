# src/tracking/cost_calculator.py - v2
"""Cost calculation from token usage.

Prices are per 1M tokens. Unknown models are priced like the default
generation model so a typo in LLM_MODEL cannot make runs free.
"""

from __future__ import annotations

import logging

from draftsmith.llm.models import TokenUsage
from draftsmith.tracking.models import ModelPricing

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"

DEFAULT_PRICING: dict[str, ModelPricing] = {
    "claude-sonnet-4-20250514": ModelPricing(
        model="claude-sonnet-4-20250514",
        input_price_per_1m=3.0, output_price_per_1m=15.0,
    ),
    "claude-haiku-4-5-20251001": ModelPricing(
        model="claude-haiku-4-5-20251001",
        input_price_per_1m=0.80, output_price_per_1m=4.0,
    ),
    "claude-opus-4-20250514": ModelPricing(
        model="claude-opus-4-20250514",
        input_price_per_1m=15.0, output_price_per_1m=75.0,
    ),
}


def pricing_for(model: str, pricing: dict[str, ModelPricing] | None = None) -> ModelPricing:
    pricing = pricing or DEFAULT_PRICING
    p = pricing.get(model)
    if p is None:
        logger.debug("No pricing for model %r, using %s", model, DEFAULT_MODEL)
        p = pricing.get(DEFAULT_MODEL, DEFAULT_PRICING[DEFAULT_MODEL])
    return p


def compute_usage_cost(
    usage: TokenUsage,
    model: str,
    pricing: dict[str, ModelPricing] | None = None,
) -> float:
    """Compute estimated cost of one generation call in USD."""
    p = pricing_for(model, pricing)
    return (usage.input_tokens * p.input_price_per_1m / 1_000_000
            + usage.output_tokens * p.output_price_per_1m / 1_000_000)
