"""Application settings using Pydantic."""

import os
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = Field(
        default=os.getenv("ENVIRONMENT", "development"),
        description="Deployment environment (development|test|production)",
    )

    # Database Configuration
    database_url: str = "sqlite:///./overseer.db"
    db_pool_size: int = Field(default=5, description="Database connection pool size")
    db_max_overflow: int = Field(default=10, description="Database connection pool max overflow")

    # Adjudication verdict thresholds. Boundaries resolve to the stricter verdict.
    investigate_threshold: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Weighted scores at or above this value are at least Investigate.",
    )
    reject_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Weighted scores at or above this value are Reject.",
    )
    min_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Estimates below this confidence can never auto-approve (Proceed).",
    )

    # Supervision tiers
    budget_tier_threshold: float = Field(default=25.0, gt=0)
    standard_tier_threshold: float = Field(default=15.0, gt=0)
    premium_tier_threshold: float = Field(default=5.0, gt=0)
    standard_budget_usd: float = Field(
        default=100.0,
        ge=0,
        description="Projects with a total budget at or above this resolve to the Standard tier.",
    )
    premium_budget_usd: float = Field(
        default=1000.0,
        ge=0,
        description="Projects with a total budget at or above this resolve to the Premium tier.",
    )
    supervision_window_seconds: float = Field(
        default=86400.0,
        gt=0,
        description="Accumulated weight older than this window is discarded before new events.",
    )
    seen_event_cache_size: int = Field(
        default=1024,
        gt=0,
        description="Per-project bound on remembered event ids for duplicate suppression.",
    )
    seen_event_ttl_seconds: float = Field(
        default=86400.0,
        gt=0,
        description="How long an event id is remembered for duplicate suppression.",
    )
    policy_file: str = Field(
        default="",
        description="Optional YAML file overriding the event weight catalog.",
    )
    periodic_check_interval_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Interval of the periodic supervision check for Standard-tier projects.",
    )

    # Scope creep
    scope_local_max_delta_pct: float = Field(
        default=25.0,
        gt=0,
        description="A single scope change at or above this effort delta always escalates.",
    )
    default_creep_tolerance_pct: float = Field(
        default=50.0,
        gt=0,
        description="Cumulative creep tolerance used when a project does not configure one.",
    )

    # Persistence retry / dead letter
    persist_max_attempts: int = Field(default=4, ge=1)
    persist_base_delay: float = Field(default=0.2, ge=0)
    persist_max_delay: float = Field(default=5.0, ge=0)

    # Observability
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: Any) -> str:
        return str(v or "INFO").upper()

    @model_validator(mode="after")
    def validate_verdict_thresholds(self) -> "Settings":
        if self.investigate_threshold >= self.reject_threshold:
            raise ValueError(
                "INVESTIGATE_THRESHOLD must be lower than REJECT_THRESHOLD "
                f"(got {self.investigate_threshold} >= {self.reject_threshold})"
            )
        return self

    @model_validator(mode="after")
    def validate_tier_budgets(self) -> "Settings":
        if self.standard_budget_usd > self.premium_budget_usd:
            raise ValueError("STANDARD_BUDGET_USD cannot exceed PREMIUM_BUDGET_USD")
        return self


# Global settings instance
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Lazily construct Settings so tests and CLIs can set env vars before first access.
    return Settings()


def reset_settings_cache() -> None:
    get_settings.cache_clear()


class _SettingsProxy:
    """Lazy proxy for Settings.

    This avoids eager settings instantiation at import time, which can make tests
    order-dependent when env vars are changed during `pytest_configure()`.
    """

    def __getattr__(self, name: str) -> Any:
        return getattr(get_settings(), name)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<SettingsProxy {get_settings()!r}>"


settings = _SettingsProxy()
