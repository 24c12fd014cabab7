# src/tracking/cost_ledger.py - v1
"""Cost ledger: running daily/monthly spend against configured ceilings.

Soft warning at `warn_ratio` of either ceiling, hard block at 100%. A block
is only bypassed through `authorize(..., override=True)`, which writes an
OverrideRecord to the store. The orchestrator is the single writer.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from draftsmith.config.settings import Settings
from draftsmith.core.clock import Clock, SystemClock
from draftsmith.core.errors import BudgetExceededError
from draftsmith.core.models import CostLedgerEntry, OverrideRecord
from draftsmith.llm.models import TokenUsage
from draftsmith.storage.base_store import BaseStore
from draftsmith.tracking.cost_calculator import compute_usage_cost
from draftsmith.tracking.models import BudgetStatus, LedgerTotals, ModelPricing

logger = logging.getLogger(__name__)


class CostLedger:
    """Tracks token usage and cost per run with daily and monthly totals."""

    def __init__(
        self,
        store: BaseStore,
        daily_ceiling_usd: float = 2.0,
        monthly_ceiling_usd: float = 30.0,
        warn_ratio: float = 0.8,
        clock: Clock | None = None,
        pricing: dict[str, ModelPricing] | None = None,
    ) -> None:
        self._store = store
        self.daily_ceiling_usd = daily_ceiling_usd
        self.monthly_ceiling_usd = monthly_ceiling_usd
        self.warn_ratio = warn_ratio
        self._clock = clock or SystemClock()
        self._pricing = pricing
        self._totals = self._empty_totals(self._clock.now())
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls, store: BaseStore, settings: Settings, clock: Clock | None = None
    ) -> CostLedger:
        return cls(
            store,
            daily_ceiling_usd=settings.cost_daily_ceiling_usd,
            monthly_ceiling_usd=settings.cost_monthly_ceiling_usd,
            warn_ratio=settings.cost_warn_ratio,
            clock=clock,
        )

    @property
    def totals(self) -> LedgerTotals:
        self._roll(self._clock.now())
        return self._totals.model_copy()

    async def load(self) -> LedgerTotals:
        """Rebuild the running sums for the current month from the store."""
        now = self._clock.now()
        month_start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
        entries = await self._store.read_ledger_entries(since=month_start)
        totals = self._empty_totals(now)
        for entry in entries:
            self._accumulate(totals, entry)
        self._totals = totals
        logger.info(
            "Cost ledger loaded: %d entries, today $%.4f, month $%.4f",
            totals.entry_count, totals.daily_usd, totals.monthly_usd,
        )
        return totals.model_copy()

    async def record(self, run_id: str, usage: TokenUsage, model: str) -> CostLedgerEntry:
        """Append one entry for `run_id` and update the running sums."""
        entry = CostLedgerEntry(
            run_id=run_id,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
            cost_usd=compute_usage_cost(usage, model, self._pricing),
            model=model,
            timestamp=self._clock.now(),
        )
        async with self._write_lock:
            await self._store.append_ledger_entry(entry)
            self._roll(entry.timestamp)
            self._accumulate(self._totals, entry)
        logger.debug("Ledger entry run=%s tokens=%d cost=$%.5f", run_id, entry.total_tokens, entry.cost_usd)
        return entry

    def check(self) -> BudgetStatus:
        """Compare running sums against the ceilings."""
        self._roll(self._clock.now())
        daily_ratio = _ratio(self._totals.daily_usd, self.daily_ceiling_usd)
        monthly_ratio = _ratio(self._totals.monthly_usd, self.monthly_ceiling_usd)
        worst = max(daily_ratio, monthly_ratio)
        if worst >= 1.0:
            level = "blocked"
        elif worst >= self.warn_ratio:
            level = "warning"
        else:
            level = "ok"
        return BudgetStatus(
            level=level,
            daily_ratio=daily_ratio,
            monthly_ratio=monthly_ratio,
            daily_spent_usd=self._totals.daily_usd,
            monthly_spent_usd=self._totals.monthly_usd,
        )

    async def authorize(self, run_id: str, override: bool = False, reason: str = "") -> BudgetStatus:
        """Gate a generation call.

        Raises:
            BudgetExceededError: When a ceiling is reached and no override was given.
        """
        status = self.check()
        if status.level == "warning":
            logger.warning(
                "Budget warning: daily %.0f%%, monthly %.0f%%",
                status.daily_ratio * 100, status.monthly_ratio * 100,
            )
        if status.level != "blocked":
            return status

        period = status.blocking_period or "daily"
        spent = status.daily_spent_usd if period == "daily" else status.monthly_spent_usd
        ceiling = self.daily_ceiling_usd if period == "daily" else self.monthly_ceiling_usd
        if not override:
            logger.error("Run %s blocked by %s budget ($%.4f / $%.4f)", run_id, period, spent, ceiling)
            raise BudgetExceededError(period, spent, ceiling)

        record = OverrideRecord(
            kind="budget", run_id=run_id, reason=reason, timestamp=self._clock.now()
        )
        await self._store.append_override(record)
        logger.warning("Budget override used for run %s (reason=%r)", run_id, reason)
        return status

    # --- Internal helpers ---

    @staticmethod
    def _empty_totals(now: datetime) -> LedgerTotals:
        return LedgerTotals(day=now.date(), month=(now.year, now.month))

    def _roll(self, now: datetime) -> None:
        if (now.year, now.month) != self._totals.month:
            self._totals = self._empty_totals(now)
        elif now.date() != self._totals.day:
            self._totals = self._totals.model_copy(
                update={"day": now.date(), "daily_usd": 0.0, "daily_tokens": 0}
            )

    @staticmethod
    def _accumulate(totals: LedgerTotals, entry: CostLedgerEntry) -> None:
        ts = entry.timestamp
        if (ts.year, ts.month) != totals.month:
            return
        totals.monthly_usd += entry.cost_usd
        totals.monthly_tokens += entry.total_tokens
        if ts.date() == totals.day:
            totals.daily_usd += entry.cost_usd
            totals.daily_tokens += entry.total_tokens
        totals.entry_count += 1


def _ratio(spent: float, ceiling: float) -> float:
    # A non-positive ceiling disables that limit.
    if ceiling <= 0:
        return 0.0
    return spent / ceiling
