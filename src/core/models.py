# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# === PIPELINE VOCABULARY ===

RunStatus = Literal["queued", "running", "completed", "degraded", "failed", "cancelled"]
StageOutcome = Literal["success", "fallback", "failed"]
SectionCategory = Literal["hook", "body", "cta", "other"]

STAGE_ANALYZE_JOB = "analyze_job"
STAGE_LOAD_STYLE = "load_style_profile"
STAGE_SELECT_TEMPLATE = "select_template"
STAGE_GENERATE = "generate"
STAGE_SCAN_RISK = "scan_risk"

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "degraded", "failed", "cancelled"})

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "queued": frozenset({"running", "failed", "cancelled"}),
    "running": frozenset({"completed", "degraded", "failed", "cancelled"}),
}

# Run markers surfaced to the caller for honest messaging.
MARKER_DEFAULT_VOICE = "default_voice"
MARKER_UNSCANNED = "unscanned"
MARKER_BUDGET_WARNING = "budget_warning"
MARKER_BUDGET_OVERRIDE = "budget_override"
MARKER_PAUSE_OVERRIDE = "pause_override"
MARKER_RECALIBRATION = "recalibration_needed"


# === JOB INPUT ===


class JobInput(BaseModel):
    """Structured job record handed over by the job-parsing collaborator."""

    model_config = ConfigDict(frozen=True)

    raw_text: str
    title: str | None = None
    skills: list[str] = Field(default_factory=list)
    budget: str | None = None
    entities: list[str] = Field(default_factory=list)
    source: Literal["manual", "feed"] = "manual"


class GenerationRequest(BaseModel):
    """One user action asking for a draft. Immutable once submitted."""

    model_config = ConfigDict(frozen=True)

    requester_id: str
    job: JobInput
    template_id: str | None = None
    budget_override: bool = False
    pause_override: bool = False
    override_reason: str = ""
    request_id: str = Field(default_factory=_new_id)
    submitted_at: datetime = Field(default_factory=_utcnow)


class JobAnalysis(BaseModel):
    """Phase-1 job facts. `annotated=False` means raw pass-through."""

    raw_text: str
    title: str | None = None
    key_entities: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    budget: str | None = None
    hidden_needs: list[str] = Field(default_factory=list)
    annotated: bool = True


class Template(BaseModel):
    """Opening strategy used to shape the draft."""

    template_id: str
    name: str
    instructions: str
    examples: list[str] = Field(default_factory=list)
    best_for: str = ""
    keywords: list[str] = Field(default_factory=list)


class RiskSpan(BaseModel):
    """Flagged span in the generated text."""

    start: int
    end: int
    text: str
    reason: str


class RiskReport(BaseModel):
    """Risk-scan outcome. `status="unscanned"` when the scanner was unavailable."""

    status: Literal["scanned", "unscanned"] = "scanned"
    score: float = 0.0
    level: Literal["low", "medium", "high", "unknown"] = "low"
    flagged: list[RiskSpan] = Field(default_factory=list)

    @classmethod
    def unscanned(cls) -> RiskReport:
        return cls(status="unscanned", level="unknown")


# === RUN RECORDS ===


class StageError(BaseModel):
    """Serializable error detail attached to a stage result or run."""

    kind: str
    message: str
    retryable: bool = False


class StageResult(BaseModel):
    """Outcome of one stage within a run. Append-only."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    stage: str
    outcome: StageOutcome
    payload: Any = None
    retry_count: int = 0
    elapsed_ms: int = 0
    error: StageError | None = None
    skipped_by_breaker: bool = False


class RunError(BaseModel):
    """Terminal error of a failed or cancelled run."""

    kind: str
    message: str
    stage: str | None = None


class PipelineRun(BaseModel):
    """A single pipeline execution, owned by the orchestrator while running."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str = Field(default_factory=_new_id)
    request_id: str = ""
    requester_id: str = ""
    status: RunStatus = "queued"
    stage_results: list[StageResult] = Field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    output_text: str = ""
    partial_output: str = ""
    error: RunError | None = None
    markers: list[str] = Field(default_factory=list)
    template_id: str | None = None
    risk: RiskReport | None = None
    style_version: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, new_status: RunStatus) -> None:
        """Move to `new_status`; transitions are monotonic and one-way."""
        allowed = _ALLOWED_TRANSITIONS.get(self.status, frozenset())
        if new_status not in allowed:
            raise ValueError(f"Illegal run transition {self.status} -> {new_status}")
        self.status = new_status

    def append_result(self, result: StageResult) -> None:
        if self.is_terminal:
            raise ValueError(f"Run {self.run_id} is terminal ({self.status})")
        self.stage_results.append(result)

    def add_marker(self, marker: str) -> None:
        if marker not in self.markers:
            self.markers.append(marker)

    def result_for(self, stage: str) -> StageResult | None:
        for result in self.stage_results:
            if result.stage == stage:
                return result
        return None

    @property
    def fallback_stages(self) -> list[str]:
        return [r.stage for r in self.stage_results if r.outcome == "fallback"]

    @property
    def failed_stages(self) -> list[str]:
        return [r.stage for r in self.stage_results if r.outcome == "failed"]


# === STYLE ===

STYLE_DIMENSIONS: tuple[str, ...] = (
    "tone",
    "sentence_length",
    "vocabulary_complexity",
    "bullet_ratio",
    "technical_depth",
    "length_preference",
)


class StyleParameters(BaseModel):
    """Numeric writing-style dimensions plus signature phrases."""

    tone: float = 5.0
    sentence_length: float = 15.0
    vocabulary_complexity: float = 8.0
    bullet_ratio: float = 0.2
    technical_depth: float = 5.0
    length_preference: float = 5.0
    common_phrases: list[str] = Field(default_factory=list)
    section_ratios: dict[str, float] = Field(default_factory=dict)

    def dimensions(self) -> dict[str, float]:
        """Numeric dimensions in canonical order."""
        return {name: float(getattr(self, name)) for name in STYLE_DIMENSIONS}


class StyleProfile(BaseModel):
    """Derived, versioned style profile. Replaced wholesale on recompute."""

    explicit: StyleParameters = Field(default_factory=StyleParameters)
    implicit: StyleParameters = Field(default_factory=StyleParameters)
    combined: StyleParameters = Field(default_factory=StyleParameters)
    explicit_weight: float = 1.0
    implicit_weight: float = 0.0
    implicit_active: bool = False
    implicit_sample_count: int = 0
    version: int = 0
    category: str = "general"
    recalibration_needed: bool = False
    drift_distance: float | None = None
    computed_at: datetime | None = None

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> StyleProfile:
        if abs(self.explicit_weight + self.implicit_weight - 1.0) > 1e-9:
            raise ValueError("explicit_weight + implicit_weight must equal 1.0")
        return self

    @classmethod
    def neutral(cls, category: str = "general") -> StyleProfile:
        """Cold-start profile: neutral parameters, explicit-only."""
        return cls(category=category)


class SentenceEdit(BaseModel):
    """One sentence-level change between a draft and its edited version."""

    op: Literal["replace", "insert", "delete"]
    before: str = ""
    after: str = ""


class EditDiffEntry(BaseModel):
    """Sentence-level diff of one edited section of a generated proposal."""

    entry_id: str = Field(default_factory=_new_id)
    proposal_id: str
    section: SectionCategory = "other"
    edits: list[SentenceEdit] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def edited_text(self) -> str:
        """Text the user wrote (inserted and replacement sentences)."""
        return " ".join(e.after for e in self.edits if e.op != "delete" and e.after)


class GoldenSample(BaseModel):
    """User-curated anchor proposal. Never decayed."""

    sample_id: str = Field(default_factory=_new_id)
    text: str
    added_at: datetime = Field(default_factory=_utcnow)

    @property
    def word_count(self) -> int:
        return len(self.text.split())


class ExplicitFeedback(BaseModel):
    """A rating of a proposal or a stated preference for one dimension."""

    feedback_id: str = Field(default_factory=_new_id)
    kind: Literal["rating", "preference"]
    proposal_id: str | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    text: str = ""
    dimension: str | None = None
    value: float | None = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _check_kind_fields(self) -> ExplicitFeedback:
        if self.kind == "rating" and self.rating is None:
            raise ValueError("rating feedback requires `rating`")
        if self.kind == "preference":
            if self.dimension not in STYLE_DIMENSIONS:
                raise ValueError(f"unknown style dimension: {self.dimension!r}")
            if self.value is None:
                raise ValueError("preference feedback requires `value`")
        return self


# === COST / AUDIT ===


class CostLedgerEntry(BaseModel):
    """Token usage and derived cost of one run. Append-only."""

    run_id: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    model: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)


class OverrideRecord(BaseModel):
    """Audit record of an explicit user override."""

    override_id: str = Field(default_factory=_new_id)
    kind: Literal["budget", "pause"]
    run_id: str | None = None
    reason: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)


# === CIRCUIT STATE ===


class CircuitState(BaseModel):
    """Snapshot of a breaker. Process-lifetime only, never persisted."""

    name: str
    state: Literal["closed", "open", "half_open"] = "closed"
    failure_count: int = 0
    window_start: float | None = None
    opened_at: float | None = None
    last_trial_at: float | None = None
