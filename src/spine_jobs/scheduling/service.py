"""Scheduler service - public API of the job runner.

The SchedulerService composes the job store (data), result ledger
(history), execution guard (safety) and execution engine (work) behind
one surface. It owns the lifetime of every job and result; nothing else
creates, mutates or deletes them.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER SERVICE                                                            │
│                                                                               │
│   ┌─────────────┐  ┌─────────────┐  ┌──────────────┐  ┌─────────────────┐   │
│   │  JobStore   │  │ ResultLedger│  │ExecutionGuard│  │ ExecutionEngine │   │
│   └──────┬──────┘  └──────┬──────┘  └──────┬───────┘  └────────┬────────┘   │
│          └────────────────┴────────┬───────┴───────────────────┘            │
│                                    ▼                                         │
│   Public API:                                                                 │
│   ├── create_job / list_jobs / get_job / update_schedule / delete_job        │
│   ├── execute(job_id, items)         run one batch (raises on conflict)      │
│   ├── get_pending_jobs(now)          due and not running                     │
│   ├── get_job_results(job_id)        stored results, insertion order         │
│   ├── get_job_history(farm, limit)   farm results, newest first              │
│   ├── get_statistics(job_id)         success rate etc., None if no results   │
│   └── cleanup_results(job_id, n)     keep newest n results                   │
│                                                                               │
│  The service owns no timer. A trigger source polls get_pending_jobs()        │
│  and calls execute() for each due job.                                       │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from spine_jobs.core.enums import MigrationStrategy, ScheduleKind, parse_enum
from spine_jobs.core.logging import get_logger
from spine_jobs.core.protocols import Batch, JobStore, ResultLedger
from spine_jobs.core.settings import JobRunnerSettings
from spine_jobs.core.timestamps import utc_now
from spine_jobs.scheduling import calculator
from spine_jobs.scheduling.engine import ExecutionEngine
from spine_jobs.scheduling.models import HistoryEntry, JobResult, JobStatistics, ScheduledJob

logger = get_logger(__name__)


class SchedulerService:
    """Public facade of the scheduled job runner.

    Example:
        >>> service = create_scheduler()
        >>> job = service.create_job(1, "Nightly sync", "", "daily", utc_now(), "merge")
        >>> for due in service.get_pending_jobs():
        ...     service.execute(due.id, supplier.items_for(due))
    """

    def __init__(
        self,
        store: JobStore,
        ledger: ResultLedger,
        engine: ExecutionEngine,
        settings: JobRunnerSettings | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.engine = engine
        self.settings = settings or engine.settings

    # === Job CRUD ===

    def create_job(
        self,
        farm_id: Any,
        name: str,
        description: str,
        schedule: ScheduleKind | str,
        scheduled_time: datetime,
        strategy: MigrationStrategy | str,
    ) -> ScheduledJob:
        """Create a scheduled job.

        Raises:
            InvalidScheduleError: If ``schedule`` or ``strategy`` is unknown
        """
        kind = parse_enum(ScheduleKind, schedule, "schedule")
        strat = parse_enum(MigrationStrategy, strategy, "strategy")
        job = self.store.create(farm_id, name, description or "", kind, scheduled_time, strat)
        logger.info(
            "job.created",
            job_id=job.id,
            farm_id=farm_id,
            schedule=kind.value,
            strategy=strat.value,
            next_run=job.next_run.isoformat() if job.next_run else None,
        )
        return job

    def list_jobs(self, farm_id: Any) -> list[ScheduledJob]:
        return self.store.list(farm_id)

    def get_job(self, job_id: str) -> ScheduledJob | None:
        return self.store.get(job_id)

    def update_schedule(
        self, job_id: str, schedule: ScheduleKind | str, scheduled_time: datetime
    ) -> ScheduledJob | None:
        """Change a job's schedule. Returns None for an unknown id."""
        kind = parse_enum(ScheduleKind, schedule, "schedule")
        job = self.store.update_schedule(job_id, kind, scheduled_time)
        if job is not None:
            logger.info("job.rescheduled", job_id=job_id, schedule=kind.value)
        return job

    def delete_job(self, job_id: str) -> bool:
        """Delete a job and its stored results. False for an unknown id."""
        if not self.store.delete(job_id):
            return False
        removed = self.ledger.remove_job(job_id)
        self.engine.guard.forget(job_id)
        logger.info("job.deleted", job_id=job_id, results_removed=removed)
        return True

    # === Execution ===

    def execute(self, job_id: str, items: Batch) -> JobResult:
        """Run ``job_id`` against ``items``. See :meth:`ExecutionEngine.execute`."""
        return self.engine.execute(job_id, items)

    execute_migration_job = execute

    def get_pending_jobs(self, now: datetime | None = None) -> list[ScheduledJob]:
        """Jobs across all farms that are due at ``now`` and not running.

        Sorted by due time, earliest first.
        """
        now = now or utc_now()
        due = [job for job in self.store.list_all() if calculator.is_due(job, now)]
        due.sort(key=calculator.due_at)
        return due

    # === Results ===

    def get_job_results(self, job_id: str) -> list[JobResult]:
        return self.ledger.list_for_job(job_id)

    def get_job_history(self, farm_id: Any, limit: int | None = None) -> list[HistoryEntry]:
        if limit is None:
            limit = self.settings.default_history_limit
        return self.ledger.history_for_farm(farm_id, limit)

    def get_statistics(self, job_id: str) -> JobStatistics | None:
        return self.ledger.statistics(job_id)

    def cleanup_results(self, job_id: str, max_results: int) -> int:
        """Keep only the newest ``max_results`` results. Returns the removed count."""
        return self.ledger.cleanup(job_id, max_results)
