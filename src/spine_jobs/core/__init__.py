"""Core primitives shared by the runner: enums, errors, logging, settings, timestamps."""

from spine_jobs.core.enums import JobStatus, MigrationStrategy, RunStatus, ScheduleKind
from spine_jobs.core.errors import (
    InvalidScheduleError,
    ItemValidationError,
    JobAlreadyRunningError,
    JobNotFoundError,
    SpineError,
)
from spine_jobs.core.logging import configure_logging, configure_logging_from_settings, get_logger
from spine_jobs.core.settings import JobRunnerSettings

__all__ = [
    "ScheduleKind",
    "MigrationStrategy",
    "JobStatus",
    "RunStatus",
    "SpineError",
    "JobNotFoundError",
    "JobAlreadyRunningError",
    "ItemValidationError",
    "InvalidScheduleError",
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "JobRunnerSettings",
]
