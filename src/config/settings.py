# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for pipeline timing, resilience thresholds, cost
ceilings, prompt budget and style-learning constants.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === GENERATION SERVICE ===
    llm_provider: Literal["anthropic"] = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 1024
    llm_temperature: float = 0.7
    anthropic_api_key: str = ""

    # === ADMISSION ===
    cooldown_seconds: float = 120.0

    # === STAGE TIMEOUTS (seconds) ===
    timeout_analyze_job: float = 10.0
    timeout_load_style: float = 5.0
    timeout_select_template: float = 5.0
    timeout_generate: float = 60.0
    timeout_scan_risk: float = 15.0

    # === RETRY ===
    stage_max_retries: int = 1
    stage_retry_backoff_s: float = 1.0

    # === STREAMING ===
    stream_flush_interval_ms: int = 50
    stream_queue_size: int = 256

    # === CIRCUIT BREAKERS ===
    breaker_failure_threshold: int = 3
    breaker_window_s: float = 60.0
    breaker_cooldown_s: float = 30.0
    global_breaker_consecutive_failures: int = 3
    global_breaker_pause_s: float = 300.0
    global_breaker_window_s: float = 60.0

    # === COST LEDGER ===
    cost_daily_ceiling_usd: float = 2.0
    cost_monthly_ceiling_usd: float = 30.0
    cost_warn_ratio: float = 0.8

    # === CONTEXT BUILDER ===
    context_max_tokens: int = 6000
    context_min_examples: int = 1
    context_style_top_n: int = 3

    # === STYLE LEARNING ===
    style_category: str = "general"
    style_implicit_threshold: int = 10
    style_explicit_weight: float = 0.7
    style_window_size: int = 100
    style_decay_half_life_days: float = 30.0
    style_drift_sigma: float = 2.0
    golden_max_samples: int = 5
    golden_min_words: int = 200

    # === STORAGE ===
    store_backend: Literal["memory", "sqlite"] = "memory"
    store_path: Path = Path("~/.draftsmith/draftsmith.db")

    # === LOGGING ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("stage_max_retries", "stream_queue_size", "context_max_tokens")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not 0.0 < self.cost_warn_ratio < 1.0:
            errors.append("COST_WARN_RATIO must be in (0, 1)")

        if self.cost_daily_ceiling_usd > self.cost_monthly_ceiling_usd:
            errors.append(
                "COST_DAILY_CEILING_USD must not exceed COST_MONTHLY_CEILING_USD"
            )

        if not 0.0 < self.style_explicit_weight < 1.0:
            errors.append("STYLE_EXPLICIT_WEIGHT must be in (0, 1)")

        if self.style_implicit_threshold > self.style_window_size:
            errors.append(
                "STYLE_IMPLICIT_THRESHOLD must be <= STYLE_WINDOW_SIZE"
            )

        if self.stream_flush_interval_ms <= 0:
            errors.append("STREAM_FLUSH_INTERVAL_MS must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    def stage_timeout(self, stage: str) -> float:
        """Timeout in seconds for a named pipeline stage."""
        timeouts = {
            "analyze_job": self.timeout_analyze_job,
            "load_style_profile": self.timeout_load_style,
            "select_template": self.timeout_select_template,
            "generate": self.timeout_generate,
            "scan_risk": self.timeout_scan_risk,
        }
        return timeouts.get(stage, self.timeout_generate)


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
