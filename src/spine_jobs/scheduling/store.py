"""In-memory job store.

Keyed storage of job definitions with farm-scoped enumeration and the two
atomic transitions the execution engine relies on:

    try_mark_running(id)   idle → running (compare-and-set, never blocks)
    record_outcome(id,...) running → outcome, counters and timestamps in one write

Every public method runs under one re-entrant lock and returns copies, so a
reader never observes a half-updated record while an execution is in flight.

Example:
    >>> store = InMemoryJobStore()
    >>> job = store.create(1, "Nightly", "", ScheduleKind.DAILY, utc_now(), MigrationStrategy.MERGE)
    >>> store.get(job.id).status
    <JobStatus.PENDING: 'pending'>
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any

from spine_jobs.core.enums import JobStatus, MigrationStrategy, ScheduleKind
from spine_jobs.core.logging import get_logger
from spine_jobs.core.timestamps import ensure_utc, generate_ulid, utc_now
from spine_jobs.scheduling import calculator
from spine_jobs.scheduling.models import ScheduledJob

logger = get_logger(__name__)


class InMemoryJobStore:
    """Process-local JobStore backed by a dict (insertion ordered)."""

    def __init__(self) -> None:
        self._jobs: dict[str, ScheduledJob] = {}
        self._lock = threading.RLock()

    # === CRUD Operations ===

    def create(
        self,
        farm_id: Any,
        name: str,
        description: str,
        schedule: ScheduleKind,
        scheduled_time: datetime,
        strategy: MigrationStrategy,
    ) -> ScheduledJob:
        """Create a job with a fresh id, ``pending`` status and computed next run."""
        scheduled_time = ensure_utc(scheduled_time)
        now = utc_now()
        job = ScheduledJob(
            id=generate_ulid(),
            farm_id=farm_id,
            name=name,
            description=description,
            schedule=schedule,
            strategy=strategy,
            scheduled_time=scheduled_time,
            status=JobStatus.PENDING,
            total_runs=0,
            next_run=calculator.next_run(schedule, scheduled_time),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            while job.id in self._jobs:
                job.id = generate_ulid()
            self._jobs[job.id] = job
            snapshot = replace(job)

        logger.debug("job_store.created", job_id=job.id, farm_id=farm_id, schedule=schedule.value)
        return snapshot

    def get(self, job_id: str) -> ScheduledJob | None:
        """Get job by id, or None if unknown."""
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job else None

    def list(self, farm_id: Any) -> list[ScheduledJob]:
        """List jobs owned by ``farm_id`` in creation order."""
        with self._lock:
            return [replace(j) for j in self._jobs.values() if j.farm_id == farm_id]

    def list_all(self) -> list[ScheduledJob]:
        """List jobs across all farms in creation order."""
        with self._lock:
            return [replace(j) for j in self._jobs.values()]

    def update_schedule(
        self, job_id: str, schedule: ScheduleKind, scheduled_time: datetime
    ) -> ScheduledJob | None:
        """Replace schedule and scheduled time, recomputing ``next_run``.

        Returns:
            Updated job, or None if the id is unknown
        """
        scheduled_time = ensure_utc(scheduled_time)
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            job.schedule = schedule
            job.scheduled_time = scheduled_time
            seed = scheduled_time if job.last_run is None else max(scheduled_time, job.last_run)
            job.next_run = calculator.next_run(schedule, seed)
            job.updated_at = utc_now()
            return replace(job)

    def delete(self, job_id: str) -> bool:
        """Delete a job. Returns False for an unknown id."""
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    # === Execution Transitions ===

    def try_mark_running(self, job_id: str) -> ScheduledJob | None:
        """Atomically move a job to ``running``.

        Returns:
            Snapshot of the job before the transition, or None if the job is
            unknown or already running
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status is JobStatus.RUNNING:
                return None
            before = replace(job)
            job.status = JobStatus.RUNNING
            job.updated_at = utc_now()
            return before

    def restore_status(self, job_id: str, status: JobStatus) -> None:
        """Undo a ``running`` mark when no result was produced."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None and job.status is JobStatus.RUNNING:
                job.status = status
                job.updated_at = utc_now()

    def record_outcome(
        self,
        job_id: str,
        status: JobStatus,
        last_run: datetime,
    ) -> ScheduledJob | None:
        """Record a finished execution in a single write.

        Increments ``total_runs`` and sets status and ``last_run``.
        ``next_run`` is seeded from ``last_run`` using the schedule the job has
        now, so a reschedule made while the run was in flight is honoured.
        Returns None if the job was deleted mid-run.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            job.total_runs += 1
            job.status = status
            job.last_run = last_run
            job.next_run = calculator.next_run(job.schedule, last_run)
            job.updated_at = utc_now()
            return replace(job)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
