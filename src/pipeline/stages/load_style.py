# src/pipeline/stages/load_style.py - v1
"""Phase 1: style profile read.

Cold start is a success carrying the default-voice marker. A degraded read
(store unavailable) is raised as StoreUnavailableError so the runner falls
back to neutral parameters and the run is marked degraded.
"""

from __future__ import annotations

from typing import Protocol

from draftsmith.core.errors import StoreUnavailableError
from draftsmith.core.models import (
    MARKER_DEFAULT_VOICE,
    MARKER_RECALIBRATION,
    STAGE_LOAD_STYLE,
    StageResult,
    StyleProfile,
)
from draftsmith.pipeline.stages.base_stage import BaseStage
from draftsmith.pipeline.state import RunContext
from draftsmith.style.engine import ProfileLoad


class ProfileSource(Protocol):
    """Read-only access to the style profile."""

    async def load_profile(self) -> ProfileLoad: ...


class LoadStyleStage(BaseStage):
    def __init__(self, source: ProfileSource, category: str = "general") -> None:
        self._source = source
        self._category = category

    @property
    def name(self) -> str:
        return STAGE_LOAD_STYLE

    async def execute(self, ctx: RunContext) -> ProfileLoad:
        load = await self._source.load_profile()
        if load.degraded:
            raise StoreUnavailableError("Style profile could not be read")
        return load

    def fallback(self, ctx: RunContext, error: Exception) -> ProfileLoad:
        return ProfileLoad(StyleProfile.neutral(self._category), degraded=True)

    def apply(self, ctx: RunContext, result: StageResult) -> None:
        load: ProfileLoad = result.payload
        ctx.profile_load = load
        ctx.style = load.profile.combined
        ctx.style_is_default = load.is_default
        ctx.run.style_version = None if load.is_default else load.profile.version
        if load.is_default:
            ctx.run.add_marker(MARKER_DEFAULT_VOICE)
        if load.profile.recalibration_needed:
            ctx.run.add_marker(MARKER_RECALIBRATION)
