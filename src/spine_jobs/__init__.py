"""
spine-jobs - scheduled job runner for recurring migration/sync batches.

Defines recurring jobs, computes their next execution time, guarantees at
most one in-flight execution per job, records every run, and exposes
statistics and trimmed history.

Usage:
    from spine_jobs import create_scheduler

    scheduler = create_scheduler()
    job = scheduler.create_job(1, "Nightly", "", "daily", utc_now(), "merge")
    result = scheduler.execute(job.id, items)
"""

__version__ = "0.1.0"

from spine_jobs.core.enums import JobStatus, MigrationStrategy, RunStatus, ScheduleKind
from spine_jobs.core.errors import JobAlreadyRunningError, JobNotFoundError, SpineError
from spine_jobs.scheduling import (
    JobResult,
    ScheduledJob,
    SchedulerService,
    create_scheduler,
)

__all__ = [
    "__version__",
    "ScheduleKind",
    "MigrationStrategy",
    "JobStatus",
    "RunStatus",
    "SpineError",
    "JobNotFoundError",
    "JobAlreadyRunningError",
    "ScheduledJob",
    "JobResult",
    "SchedulerService",
    "create_scheduler",
]
