"""Execution engine - runs one job against one batch.

Manifesto:
    An execution either runs to completion or is rejected up front. Bad
    items degrade the run's classification; they never abort the batch.
    A malformed batch is a failed run, not an exception.
    Only two conditions escape to the caller: an unknown job id and a
    concurrent execution of the same job.

┌──────────────────────────────────────────────────────────────────────────────┐
│  EXECUTION STATE MACHINE (per job)                                            │
│                                                                               │
│        idle ──acquire──► running ──► {success | partial | failed} ──► idle   │
│          ▲                  │                                                 │
│          └── rejected ◄─────┘  second execute() while running:               │
│              JobAlreadyRunningError, no side effects                          │
│                                                                               │
│  execute(job_id, items):                                                      │
│   1. store.get(job_id)              → JobNotFoundError if absent              │
│   2. guard.hold(job_id)             → JobAlreadyRunningError if held          │
│      store.try_mark_running()         (atomic compare-and-set on status)      │
│   3. start_time                                                               │
│   4. transform(item, strategy) per item, failures counted; a batch that is    │
│      not a sequence of items yields a failed result with zero counts          │
│   5. end_time (strictly after start_time)                                     │
│   6. classify: failed / partial / success                                     │
│   7. store.record_outcome(...), then ledger.append(result)                    │
│      (dropped if the job was deleted mid-run)                                 │
│   8. next_run seeded from end_time with the job's current schedule            │
│   9. release guard                                                            │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta

from spine_jobs.core.enums import MigrationStrategy, RunStatus
from spine_jobs.core.errors import JobAlreadyRunningError, JobNotFoundError
from spine_jobs.core.logging import LogContext, get_logger
from spine_jobs.core.protocols import Batch, ItemTransform, JobStore, ResultLedger
from spine_jobs.core.settings import JobRunnerSettings
from spine_jobs.core.timestamps import utc_now
from spine_jobs.scheduling.items import validate_task_item
from spine_jobs.scheduling.lock_manager import ExecutionGuard
from spine_jobs.scheduling.models import JobResult

logger = get_logger(__name__)

# Smallest representable datetime step; keeps duration > 0 on coarse clocks.
_CLOCK_RESOLUTION = timedelta(microseconds=1)


def classify(total: int, migrated: int) -> RunStatus:
    """Classify a run from its counts."""
    if total > 0 and migrated == 0:
        return RunStatus.FAILED
    if migrated < total:
        return RunStatus.PARTIAL
    return RunStatus.SUCCESS


class ExecutionEngine:
    """Runs jobs against batches under a per-job execution guard."""

    def __init__(
        self,
        store: JobStore,
        ledger: ResultLedger,
        guard: ExecutionGuard | None = None,
        transform: ItemTransform | None = None,
        settings: JobRunnerSettings | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.guard = guard or ExecutionGuard()
        self.transform: ItemTransform = transform or validate_task_item
        self.settings = settings or JobRunnerSettings()

    def execute(self, job_id: str, items: Batch) -> JobResult:
        """Execute ``job_id`` against ``items``.

        Args:
            job_id: Job to run
            items: Batch of work items, each handed to the item transform

        Returns:
            The JobResult of this execution

        Raises:
            JobNotFoundError: If the job does not exist
            JobAlreadyRunningError: If an execution of the job is in flight
        """
        if self.store.get(job_id) is None:
            raise JobNotFoundError(job_id)

        with self.guard.hold(job_id):
            job = self.store.try_mark_running(job_id)
            if job is None:
                # Deleted between lookup and claim, or marked running elsewhere.
                if self.store.get(job_id) is None:
                    raise JobNotFoundError(job_id)
                logger.warning("job.execution.rejected", job_id=job_id, reason="status_running")
                raise JobAlreadyRunningError(job_id)

            with LogContext(job_id=job_id, farm_id=job.farm_id):
                try:
                    result = self._run_batch(job.id, job.strategy, items)
                except BaseException:
                    self.store.restore_status(job_id, job.status)
                    raise
                return self._record(job_id, result)

    def _record(self, job_id: str, result: JobResult) -> JobResult:
        # Counter first, so stored results never outnumber total_runs.
        updated = self.store.record_outcome(
            job_id,
            status=result.status.to_job_status(),
            last_run=result.end_time,
        )
        if updated is None:
            logger.warning("job.execution.discarded", reason="job_deleted")
            return result

        self.ledger.append(result)
        if self.store.get(job_id) is None:
            # delete_job ran between record_outcome and append
            self.ledger.remove_job(job_id)
            logger.warning("job.execution.discarded", reason="job_deleted")
            return result

        if self.settings.max_results_per_job is not None:
            self.ledger.cleanup(job_id, self.settings.max_results_per_job)

        logger.info(
            "job.execution.completed",
            status=result.status.value,
            total=result.total_tasks,
            migrated=result.migrated_tasks,
            failed=result.failed_tasks,
            duration_ms=round(result.duration_ms, 3),
            total_runs=updated.total_runs,
            next_run=updated.next_run.isoformat() if updated.next_run else None,
        )
        return result

    def _run_batch(
        self, job_id: str, strategy: MigrationStrategy, items: Batch
    ) -> JobResult:
        start_time = utc_now()
        try:
            if isinstance(items, (str, bytes, Mapping)):
                raise TypeError(f"batch must be a sequence of items, got {type(items).__name__}")
            items = list(items)
        except TypeError as exc:
            logger.warning("job.batch.invalid", error=str(exc))
            return JobResult(
                job_id=job_id,
                start_time=start_time,
                end_time=max(utc_now(), start_time + _CLOCK_RESOLUTION),
                status=RunStatus.FAILED,
                total_tasks=0,
                migrated_tasks=0,
                failed_tasks=0,
                strategy=strategy,
                errors=(f"batch: {exc}",),
            )

        logger.info("job.execution.started", total=len(items), strategy=strategy.value)

        migrated = 0
        errors: list[str] = []
        for index, item in enumerate(items):
            try:
                if not isinstance(item, Mapping):
                    raise TypeError(f"item must be a mapping, got {type(item).__name__}")
                self.transform(item, strategy)
            except Exception as exc:
                logger.warning("job.item.failed", item_index=index, error=str(exc))
                if len(errors) < self.settings.max_error_messages:
                    errors.append(f"{index}: {exc}")
                continue
            migrated += 1

        end_time = max(utc_now(), start_time + _CLOCK_RESOLUTION)
        total = len(items)
        return JobResult(
            job_id=job_id,
            start_time=start_time,
            end_time=end_time,
            status=classify(total, migrated),
            total_tasks=total,
            migrated_tasks=migrated,
            failed_tasks=total - migrated,
            strategy=strategy,
            errors=tuple(errors),
        )
