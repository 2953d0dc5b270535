"""Runtime settings for the spine-jobs runner.

Configuration should be explicit, validated, and environment-driven.
``JobRunnerSettings`` reads ``SPINE_JOBS_*`` environment variables (and a
``.env`` file when present) and validates them at startup.

Examples:
    >>> from spine_jobs.core.settings import JobRunnerSettings
    >>> settings = JobRunnerSettings(max_results_per_job=100)
    >>> settings.max_results_per_job
    100

Fields
──────
log_level             : structlog log level
log_json              : JSON logs (True), console (False), auto-detect (None)
service_name          : ``service.name`` attached to every log line
max_results_per_job   : auto-retention bound applied after each run (None = keep all)
max_error_messages    : per-item error messages kept on a single JobResult
default_history_limit : farm history limit used when the caller passes none
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class JobRunnerSettings(BaseSettings):
    """Settings shared by the scheduler service and execution engine."""

    model_config = SettingsConfigDict(
        env_prefix="SPINE_JOBS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None
    service_name: str = "spine-jobs"

    # ── Retention ────────────────────────────────────────────────
    max_results_per_job: int | None = Field(
        default=None,
        ge=0,
        description="Keep at most this many results per job after each run",
    )
    max_error_messages: int = Field(default=20, ge=0)

    # ── Queries ──────────────────────────────────────────────────
    default_history_limit: int | None = Field(default=None, ge=0)

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level
