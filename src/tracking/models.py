# src/tracking/models.py - v2
"""Cost tracking models: ModelPricing, BudgetStatus, LedgerTotals."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel

BudgetLevel = Literal["ok", "warning", "blocked"]


class ModelPricing(BaseModel):
    """Per-model pricing per 1M tokens (USD)."""

    model: str
    input_price_per_1m: float
    output_price_per_1m: float


class BudgetStatus(BaseModel):
    """Result of a ceiling check against the running sums."""

    level: BudgetLevel = "ok"
    daily_ratio: float = 0.0
    monthly_ratio: float = 0.0
    daily_spent_usd: float = 0.0
    monthly_spent_usd: float = 0.0

    @property
    def blocking_period(self) -> str | None:
        """'daily' or 'monthly' when blocked, else None."""
        if self.level != "blocked":
            return None
        return "daily" if self.daily_ratio >= 1.0 else "monthly"


class LedgerTotals(BaseModel):
    """Running sums, rolled over when the day or month changes."""

    day: date
    month: tuple[int, int]
    daily_usd: float = 0.0
    monthly_usd: float = 0.0
    daily_tokens: int = 0
    monthly_tokens: int = 0
    entry_count: int = 0
