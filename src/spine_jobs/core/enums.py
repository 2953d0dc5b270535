"""
Closed variants for the job runner.

Schedule kinds, strategies and statuses are enums rather than free strings so
an unknown value is rejected at the boundary instead of silently falling
through a string comparison. ``parse_enum`` is the single conversion point.

STDLIB ONLY - NO PYDANTIC.
"""

from __future__ import annotations

from enum import Enum
from typing import TypeVar

from spine_jobs.core.errors import InvalidScheduleError

E = TypeVar("E", bound=Enum)


class ScheduleKind(str, Enum):
    """How often a job recurs."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ONCE = "once"

    @property
    def is_recurring(self) -> bool:
        return self is not ScheduleKind.ONCE


class MigrationStrategy(str, Enum):
    """
    Conflict-reconciliation hint passed through to the item transform.

    The runner never interprets it.
    """

    OVERWRITE = "overwrite"
    MERGE = "merge"
    SKIP_EXISTING = "skip_existing"


class JobStatus(str, Enum):
    """Job-level status.

    ``RUNNING`` is held only while an execution is in flight; the other
    values reflect the outcome class of the most recent execution.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Classification of a single execution."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    def to_job_status(self) -> JobStatus:
        match self:
            case RunStatus.SUCCESS:
                return JobStatus.COMPLETED
            case RunStatus.PARTIAL:
                return JobStatus.COMPLETED_WITH_WARNINGS
            case RunStatus.FAILED:
                return JobStatus.FAILED


def parse_enum(enum_cls: type[E], value: E | str, kind: str) -> E:
    """Convert ``value`` to ``enum_cls``, raising InvalidScheduleError if unknown.

    Args:
        enum_cls: Target enum class
        value: Enum member or its string value (case-insensitive)
        kind: Name used in the error message ("schedule", "strategy", ...)
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidScheduleError(
            kind, value, allowed=[member.value for member in enum_cls]
        ) from exc


__all__ = [
    "ScheduleKind",
    "MigrationStrategy",
    "JobStatus",
    "RunStatus",
    "parse_enum",
]
