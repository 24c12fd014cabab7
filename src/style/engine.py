# src/style/engine.py - v1
"""Style learning engine: the single writer of the style profile.

Consumes explicit feedback (ratings, preferences, golden samples) and
implicit edit diffs, and recomputes the profile off the hot path. The
orchestrator only reads the profile through `load_profile()`; recompute is
triggered by RunCompleted events on the bus or by feedback calls.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from draftsmith.config.settings import Settings
from draftsmith.core.clock import Clock, SystemClock
from draftsmith.core.errors import StoreUnavailableError, ValidationError
from draftsmith.core.models import (
    EditDiffEntry,
    ExplicitFeedback,
    GoldenSample,
    SectionCategory,
    StyleProfile,
)
from draftsmith.pipeline.events import EventBus, RunCompleted
from draftsmith.storage.base_store import BaseStore
from draftsmith.style.aggregator import combine, explicit_parameters, implicit_parameters
from draftsmith.style.analyzer import analyze_text, neutral_parameters
from draftsmith.style.decay import ordered_window, weigh_entries
from draftsmith.style.diff import sentence_diff
from draftsmith.style.drift import check_drift

logger = logging.getLogger(__name__)


@dataclass
class ProfileLoad:
    """Result of a profile read.

    cold_start: no profile stored yet, neutral defaults returned.
    degraded: the store failed, neutral defaults returned.
    """

    profile: StyleProfile
    cold_start: bool = False
    degraded: bool = False

    @property
    def is_default(self) -> bool:
        return self.cold_start or self.degraded


class StyleLearningEngine:
    """Aggregates explicit and implicit signals into a StyleProfile."""

    def __init__(
        self,
        store: BaseStore,
        category: str = "general",
        implicit_threshold: int = 10,
        explicit_weight: float = 0.7,
        window_size: int = 100,
        half_life_days: float = 30.0,
        drift_sigma: float = 2.0,
        golden_max_samples: int = 5,
        golden_min_words: int = 200,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self.category = category
        self.implicit_threshold = implicit_threshold
        self.explicit_weight = explicit_weight
        self.window_size = window_size
        self.half_life_days = half_life_days
        self.drift_sigma = drift_sigma
        self.golden_max_samples = golden_max_samples
        self.golden_min_words = golden_min_words
        self._clock = clock or SystemClock()
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self._subscription: str | None = None

    @classmethod
    def from_settings(
        cls, store: BaseStore, settings: Settings, clock: Clock | None = None
    ) -> StyleLearningEngine:
        return cls(
            store,
            category=settings.style_category,
            implicit_threshold=settings.style_implicit_threshold,
            explicit_weight=settings.style_explicit_weight,
            window_size=settings.style_window_size,
            half_life_days=settings.style_decay_half_life_days,
            drift_sigma=settings.style_drift_sigma,
            golden_max_samples=settings.golden_max_samples,
            golden_min_words=settings.golden_min_words,
            clock=clock,
        )

    # --- Read path (orchestrator) ---

    async def load_profile(self) -> ProfileLoad:
        """Current profile; neutral defaults on cold start or store failure."""
        try:
            profile = await self._store.read_profile(self.category)
        except StoreUnavailableError as e:
            logger.warning("Style profile read failed, using neutral defaults: %s", e)
            return ProfileLoad(StyleProfile.neutral(self.category), degraded=True)
        if profile is None:
            logger.info("No style profile for '%s' yet (cold start)", self.category)
            return ProfileLoad(StyleProfile.neutral(self.category), cold_start=True)
        return ProfileLoad(profile)

    # --- Signal intake ---

    async def record_feedback(self, feedback: ExplicitFeedback) -> None:
        await self._store.append_feedback(feedback)
        logger.info("Recorded %s feedback", feedback.kind)
        self.schedule_recompute()

    async def record_edit(
        self,
        proposal_id: str,
        section: SectionCategory,
        before: str,
        after: str,
    ) -> EditDiffEntry | None:
        """Diff an edited section and append it to the capped window.

        Returns None when the edit changed no sentence.
        """
        edits = sentence_diff(before, after)
        if not edits:
            return None
        entry = EditDiffEntry(
            proposal_id=proposal_id,
            section=section,
            edits=edits,
            timestamp=self._clock.now(),
        )
        await self._store.append_edit(entry, keep_last=self.window_size)
        logger.debug("Recorded %d sentence edit(s) for proposal %s/%s", len(edits), proposal_id, section)
        self.schedule_recompute()
        return entry

    async def set_golden_samples(self, texts: list[str]) -> list[GoldenSample]:
        """Replace the golden set wholesale.

        Raises:
            ValidationError: Too many samples or a sample under the word minimum.
        """
        if len(texts) > self.golden_max_samples:
            raise ValidationError(
                f"At most {self.golden_max_samples} golden samples allowed, got {len(texts)}"
            )
        samples = [GoldenSample(text=t, added_at=self._clock.now()) for t in texts]
        for i, sample in enumerate(samples):
            if sample.word_count < self.golden_min_words:
                raise ValidationError(
                    f"Golden sample {i + 1} has {sample.word_count} words; "
                    f"minimum is {self.golden_min_words}"
                )
        await self._store.replace_golden_samples(samples)
        logger.info("Golden set replaced (%d samples)", len(samples))
        self.schedule_recompute()
        return samples

    # --- Recompute ---

    async def recompute(self) -> StyleProfile:
        """Rebuild the profile from stored signals and write it back.

        Serialized by a lock so the profile has a single writer.
        """
        async with self._lock:
            golden = await self._store.read_golden_samples()
            feedback = await self._store.read_feedback()
            window = ordered_window(await self._store.read_edits(self.window_size), self.window_size)
            previous = await self._store.read_profile(self.category)

            explicit = explicit_parameters(golden, feedback)
            implicit = implicit_parameters(weigh_entries(window, self.half_life_days))
            active = implicit.proposal_count >= self.implicit_threshold

            if active:
                explicit_weight = self.explicit_weight
                implicit_weight = 1.0 - explicit_weight
                combined = combine(explicit, implicit.parameters, explicit_weight, implicit_weight)
            else:
                explicit_weight, implicit_weight = 1.0, 0.0
                combined = explicit.model_copy(deep=True)

            learned = implicit.parameters if active else combined
            drift = check_drift(
                learned, [analyze_text(s.text) for s in golden], sigma=self.drift_sigma
            )

            profile = StyleProfile(
                explicit=explicit,
                implicit=implicit.parameters if implicit.entry_count else neutral_parameters(),
                combined=combined,
                explicit_weight=explicit_weight,
                implicit_weight=implicit_weight,
                implicit_active=active,
                implicit_sample_count=implicit.proposal_count,
                version=(previous.version + 1) if previous else 1,
                category=self.category,
                recalibration_needed=drift.recalibration_needed,
                drift_distance=drift.distance,
                computed_at=self._clock.now(),
            )
            await self._store.write_profile(profile)

        logger.info(
            "Style profile v%d recomputed (implicit %s, %d proposals, drift=%s)",
            profile.version,
            "active" if active else "inactive",
            implicit.proposal_count,
            f"{drift.distance:.2f}" if drift.distance is not None else "n/a",
        )
        return profile

    def schedule_recompute(self) -> asyncio.Task:
        """Run recompute in the background; failures are logged."""
        task = asyncio.ensure_future(self.recompute())
        self._pending.add(task)
        task.add_done_callback(self._on_recompute_done)
        return task

    async def wait_idle(self) -> None:
        """Wait until no background recompute is pending."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def attach(self, bus: EventBus) -> None:
        """Subscribe to RunCompleted so each finished run triggers recompute."""
        if self._subscription is None:
            self._subscription = bus.subscribe(self._on_run_completed, RunCompleted)

    def detach(self, bus: EventBus) -> None:
        if self._subscription is not None:
            bus.unsubscribe(self._subscription)
            self._subscription = None

    def _on_run_completed(self, event: RunCompleted) -> None:
        logger.debug("Run %s completed; scheduling style recompute", event.run_id)
        self.schedule_recompute()

    def _on_recompute_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background style recompute failed: %s", error)
