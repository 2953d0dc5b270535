"""Scheduled job and job result models.

Models for recurring migration/synchronization jobs: job definitions,
per-execution results, aggregate statistics, and farm history entries.

Tags:
    spine-jobs, models, scheduling, dataclasses

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any

from spine_jobs.core.enums import JobStatus, MigrationStrategy, RunStatus, ScheduleKind
from spine_jobs.core.timestamps import to_iso8601

# ---------------------------------------------------------------------------
# Job definitions
# ---------------------------------------------------------------------------


@dataclass
class ScheduledJob:
    """A named, schedulable unit of recurring or one-off batch work.

    ``next_run`` is only ever set for recurring schedules. A ``once`` job
    keeps ``next_run=None`` from creation on; it is due at
    ``scheduled_time`` until its single run records ``last_run``.
    """

    id: str
    farm_id: Any
    name: str
    description: str
    schedule: ScheduleKind
    strategy: MigrationStrategy
    scheduled_time: datetime
    status: JobStatus = JobStatus.PENDING
    total_runs: int = 0
    last_run: datetime | None = None
    next_run: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.status is JobStatus.RUNNING

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "farm_id": self.farm_id,
            "name": self.name,
            "description": self.description,
            "schedule": self.schedule.value,
            "strategy": self.strategy.value,
            "scheduled_time": to_iso8601(self.scheduled_time),
            "status": self.status.value,
            "total_runs": self.total_runs,
            "last_run": to_iso8601(self.last_run),
            "next_run": to_iso8601(self.next_run),
            "created_at": to_iso8601(self.created_at),
            "updated_at": to_iso8601(self.updated_at),
        }


# ---------------------------------------------------------------------------
# Execution results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobResult:
    """Outcome of one execution. Never mutated after creation."""

    job_id: str
    start_time: datetime
    end_time: datetime
    status: RunStatus
    total_tasks: int
    migrated_tasks: int
    failed_tasks: int
    strategy: MigrationStrategy = MigrationStrategy.MERGE
    errors: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.migrated_tasks + self.failed_tasks != self.total_tasks:
            raise ValueError(
                f"migrated ({self.migrated_tasks}) + failed ({self.failed_tasks}) "
                f"!= total ({self.total_tasks})"
            )
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        return self.duration.total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "start_time": to_iso8601(self.start_time),
            "end_time": to_iso8601(self.end_time),
            "duration_ms": self.duration_ms,
            "status": self.status.value,
            "total_tasks": self.total_tasks,
            "migrated_tasks": self.migrated_tasks,
            "failed_tasks": self.failed_tasks,
            "strategy": self.strategy.value,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class HistoryEntry:
    """A JobResult annotated with the owning job's name and farm."""

    job_name: str
    farm_id: Any
    result: JobResult

    def __getattr__(self, name: str) -> Any:
        # Only reached for names not defined on the entry itself.
        if name == "result":
            raise AttributeError(name)
        return getattr(self.result, name)

    def to_dict(self) -> dict[str, Any]:
        return {"job_name": self.job_name, "farm_id": self.farm_id, **self.result.to_dict()}


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@dataclass
class JobStatistics:
    """Aggregate statistics over a job's stored results."""

    job_id: str
    total_runs: int
    stored_results: int
    successful_runs: int = 0
    partial_runs: int = 0
    failed_runs: int = 0
    success_rate: float = 0.0
    average_duration_ms: float = 0.0
    total_migrated_tasks: int = 0
    total_failed_tasks: int = 0
    last_run: datetime | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_run"] = to_iso8601(self.last_run)
        return data
