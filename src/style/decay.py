# src/style/decay.py - v1
"""Time decay for implicit edit signals.

Formula: weight = 2^(-age_days / half_life_days), floored at MIN_WEIGHT.
Age is measured from a reference instant supplied by the caller (the newest
entry in the window), never from the wall clock, so the same window always
yields the same weights.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone

from draftsmith.core.models import EditDiffEntry

logger = logging.getLogger(__name__)

# Default half-life in days (an entry this old counts half as much as a fresh one)
DEFAULT_HALF_LIFE_DAYS = 30.0
# Minimum weight floor (old entries never vanish entirely)
MIN_WEIGHT = 0.05

_SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class WeightedEntry:
    """An edit entry with its age and decay weight."""

    entry: EditDiffEntry
    age_days: float
    weight: float


def compute_decay_factor(
    age_days: float,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
) -> float:
    """Compute exponential decay factor for a given age.

    Args:
        age_days: Age of the entry in days.
        half_life_days: Days until the weight halves.

    Returns:
        Decay multiplier in [MIN_WEIGHT, 1].
    """
    if age_days <= 0:
        return 1.0
    if half_life_days <= 0:
        return MIN_WEIGHT
    return max(MIN_WEIGHT, math.pow(2, -age_days / half_life_days))


def ordered_window(entries: list[EditDiffEntry], window_size: int) -> list[EditDiffEntry]:
    """Most recent `window_size` entries in canonical (timestamp, entry_id) order."""
    ordered = sorted(entries, key=lambda e: (_as_utc(e.timestamp), e.entry_id))
    if window_size <= 0:
        return []
    return ordered[-window_size:]


def weigh_entries(
    entries: list[EditDiffEntry],
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
    reference: datetime | None = None,
) -> list[WeightedEntry]:
    """Attach decay weights to entries, in canonical order.

    Args:
        entries: Window of edit entries (any order).
        half_life_days: Decay half-life.
        reference: Instant ages are measured from. Defaults to the newest
            entry's timestamp.
    """
    if not entries:
        return []
    ordered = sorted(entries, key=lambda e: (_as_utc(e.timestamp), e.entry_id))
    ref = _as_utc(reference) if reference is not None else _as_utc(ordered[-1].timestamp)

    weighted: list[WeightedEntry] = []
    for entry in ordered:
        age_days = max(0.0, (ref - _as_utc(entry.timestamp)).total_seconds() / _SECONDS_PER_DAY)
        weighted.append(WeightedEntry(entry, age_days, compute_decay_factor(age_days, half_life_days)))

    logger.debug(
        "Decay weights computed for %d entries (oldest %.1f days)", len(weighted), weighted[0].age_days
    )
    return weighted


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
