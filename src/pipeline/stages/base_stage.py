# src/pipeline/stages/base_stage.py - v1
"""Uniform stage contract.

Every stage implements `execute(ctx)`; retry, timeout, circuit breaking and
fallback are applied by StageRunner, written once for all stages. A
non-critical stage must provide `fallback`; a critical stage has none and
its failure fails the run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from draftsmith.core.models import StageResult
from draftsmith.pipeline.state import RunContext


class BaseStage(ABC):
    """Standard interface for all pipeline stages."""

    critical: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Stage identifier used in results, events and breaker names."""

    @abstractmethod
    async def execute(self, ctx: RunContext) -> Any:
        """Run the stage and return its payload."""

    def fallback(self, ctx: RunContext, error: Exception) -> Any:
        """Payload to use when the stage cannot succeed."""
        raise NotImplementedError(f"Stage '{self.name}' has no fallback")

    def apply(self, ctx: RunContext, result: StageResult) -> None:
        """Write the result payload back into the run context."""
