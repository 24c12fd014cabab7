# src/core/errors.py - v1
"""Pipeline error taxonomy.

Every error carries a stable `kind` (used in run records and events) and a
`retryable` flag consulted by the stage runner. Only timeouts and transient
service errors are retried.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    kind: str = "pipeline_error"
    retryable: bool = False

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind


class StageTimeoutError(PipelineError):
    """A stage did not finish within its timeout."""

    kind = "timeout"
    retryable = True

    def __init__(self, stage: str, timeout_s: float) -> None:
        super().__init__(f"Stage '{stage}' timed out after {timeout_s:.1f}s")
        self.stage = stage
        self.timeout_s = timeout_s


class TransientServiceError(PipelineError):
    """A collaborator failed in a way that may succeed on retry.

    `server_class` marks server/unavailable failures (5xx, overloaded,
    connection refused); only those feed the global circuit breaker.
    """

    kind = "transient_service_error"
    retryable = True

    def __init__(self, message: str, server_class: bool = True, status_code: int | None = None) -> None:
        super().__init__(message)
        self.server_class = server_class
        self.status_code = status_code


class GenerationServiceError(PipelineError):
    """Permanent failure reported by the generation service (4xx, bad key)."""

    kind = "generation_service_error"


class ValidationError(PipelineError):
    """Input failed validation; never retried."""

    kind = "validation_error"


class BudgetExceededError(PipelineError):
    """Cost ceiling reached; checked before any generation call."""

    kind = "budget_exceeded"

    def __init__(self, period: str, spent_usd: float, ceiling_usd: float) -> None:
        super().__init__(
            f"{period.capitalize()} budget exceeded: ${spent_usd:.4f} of ${ceiling_usd:.4f}"
        )
        self.period = period
        self.spent_usd = spent_usd
        self.ceiling_usd = ceiling_usd


class CircuitOpenError(PipelineError):
    """A circuit breaker is open (stage) or paused (global)."""

    kind = "circuit_open"

    def __init__(self, name: str, retry_after_s: float = 0.0) -> None:
        super().__init__(f"Circuit '{name}' is open (retry in {retry_after_s:.0f}s)")
        self.name = name
        self.retry_after_s = retry_after_s


class StoreUnavailableError(PipelineError):
    """The persistent store could not be read or written."""

    kind = "store_unavailable"


class CancellationRequested(PipelineError):
    """Cooperative cancellation observed at a checkpoint."""

    kind = "cancelled"


class ContextTooLargeError(PipelineError):
    """Prompt still exceeds the budget after every compression tier."""

    kind = "context_too_large"

    def __init__(self, estimated_tokens: int, budget_tokens: int) -> None:
        super().__init__(
            f"Prompt estimate {estimated_tokens} tokens exceeds budget {budget_tokens}"
        )
        self.estimated_tokens = estimated_tokens
        self.budget_tokens = budget_tokens


class CooldownActiveError(PipelineError):
    """Requester must wait before submitting another run."""

    kind = "cooldown_active"
    retryable = True

    def __init__(self, requester_id: str, remaining_s: float) -> None:
        super().__init__(
            f"Requester '{requester_id}' is cooling down ({remaining_s:.0f}s remaining)"
        )
        self.requester_id = requester_id
        self.remaining_s = remaining_s
