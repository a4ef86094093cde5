"""
TaskDeps — Configuration Management
=====================================
Centralized, validated configuration with environment-based overrides.
All settings are loaded from environment variables with sensible defaults.

Usage:
    from taskdeps.core.config import get_settings
    settings = get_settings()
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Root configuration object.

    All values can be overridden via environment variables prefixed with ``TASKDEPS_``.
    Example: ``TASKDEPS_ANALYSIS_TIMEOUT_SECONDS=30``
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKDEPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────────────────
    app_name: str = "taskdeps"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    # ── Logging & Observability ──────────────────────────────────────────
    log_level: str = Field(
        default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_format: str = "json"  # "json" or "console"

    # ── Correlation ──────────────────────────────────────────────────────
    correlation_id_header: str = "X-Correlation-ID"

    # ── Server ───────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    # ── Analysis ─────────────────────────────────────────────────────────
    analysis_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Deadline applied to cycle detection and critical-path enumeration.",
    )
    max_path_depth: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Path length (in tasks) past which enumeration stops.",
    )
    max_stored_analyses: int = Field(
        default=500,
        ge=1,
        description="Critical-path analyses kept before the oldest is evicted.",
    )
    default_dependency_delay_hours: float = Field(
        default=4.0,
        ge=0,
        description="Effort assumed for a task the lookup has no estimate for.",
    )

    # ── Conflicts ────────────────────────────────────────────────────────
    auto_resolve_conflicts: bool = False

    # ── Impact ───────────────────────────────────────────────────────────
    max_impact_history: int = Field(default=1000, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the singleton Settings instance.

    Cached so environment is read exactly once per process lifetime.
    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    return Settings()
