"""In-memory result ledger.

Append-only per-job log of :class:`JobResult` records with bounded
retention, farm-wide history queries and per-job statistics.

┌──────────────────────────────────────────────────────────────────────┐
│  RESULT LEDGER                                                        │
│                                                                       │
│  append(result)              add to the job's list, never removes     │
│  list_for_job(job_id)        insertion order                          │
│  history_for_farm(farm, n)   all farm jobs, end_time descending       │
│  cleanup(job_id, max)        keep the newest ``max`` results          │
│  statistics(job_id)          successes over lifetime total_runs       │
│                                                                       │
│  Retention trims stored detail only; ScheduledJob.total_runs keeps    │
│  counting every execution.                                            │
└──────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import itertools
import threading
from collections import defaultdict
from datetime import datetime
from typing import Any

from spine_jobs.core.enums import RunStatus
from spine_jobs.core.errors import InvalidConfigError
from spine_jobs.core.logging import get_logger
from spine_jobs.core.protocols import JobStore
from spine_jobs.scheduling.models import HistoryEntry, JobResult, JobStatistics

logger = get_logger(__name__)


class InMemoryResultLedger:
    """Process-local ResultLedger.

    The ledger resolves job names, farms and run counters through the job
    store it is given; it never writes to the store.
    """

    def __init__(self, store: JobStore) -> None:
        self._store = store
        # (append sequence, result) per job, in insertion order
        self._results: dict[str, list[tuple[int, JobResult]]] = defaultdict(list)
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    def append(self, result: JobResult) -> None:
        with self._lock:
            self._results[result.job_id].append((next(self._sequence), result))

    def list_for_job(self, job_id: str) -> list[JobResult]:
        with self._lock:
            return [result for _, result in self._results.get(job_id, ())]

    def count(self, job_id: str) -> int:
        with self._lock:
            return len(self._results.get(job_id, ()))

    def history_for_farm(self, farm_id: Any, limit: int | None = None) -> list[HistoryEntry]:
        """Results of every job owned by ``farm_id``, most recent first.

        Args:
            farm_id: Owning farm
            limit: Maximum number of entries (None = all)

        Returns:
            HistoryEntry list sorted by ``end_time`` descending. Results with
            equal end times are ordered newest-appended first.
        """
        if limit is not None and limit < 0:
            raise InvalidConfigError("limit", limit, "History limit must be >= 0")

        jobs = self._store.list(farm_id)
        ranked: list[tuple[datetime, int, HistoryEntry]] = []
        with self._lock:
            for job in jobs:
                for seq, result in self._results.get(job.id, ()):
                    entry = HistoryEntry(job_name=job.name, farm_id=job.farm_id, result=result)
                    ranked.append((result.end_time, seq, entry))

        # later appends rank ahead on equal end_time
        ranked.sort(key=lambda r: (r[0], r[1]), reverse=True)
        entries = [entry for _, _, entry in ranked]
        if limit is not None:
            entries = entries[:limit]
        return entries

    def cleanup(self, job_id: str, max_results: int) -> int:
        """Keep only the newest ``max_results`` results for ``job_id``.

        Idempotent: a second call with the same bound removes nothing.

        Returns:
            Number of results removed
        """
        if max_results < 0:
            raise InvalidConfigError("max_results", max_results, "max_results must be >= 0")

        with self._lock:
            results = self._results.get(job_id)
            if not results or len(results) <= max_results:
                return 0
            removed = len(results) - max_results
            del results[:removed]

        logger.info("result_ledger.cleanup", job_id=job_id, removed=removed, kept=max_results)
        return removed

    def remove_job(self, job_id: str) -> int:
        """Drop every stored result of a deleted job."""
        with self._lock:
            return len(self._results.pop(job_id, ()))

    def statistics(self, job_id: str) -> JobStatistics | None:
        """Aggregate statistics, or None if the job is unknown or has no results.

        ``success_rate`` is stored ``success`` results over ``total_runs``, as a
        percentage clamped to [0, 100]. After a cleanup it counts only the
        successes still stored.
        """
        job = self._store.get(job_id)
        if job is None:
            return None
        results = self.list_for_job(job_id)
        if not results:
            return None

        stored = len(results)
        successful = sum(1 for r in results if r.status is RunStatus.SUCCESS)
        partial = sum(1 for r in results if r.status is RunStatus.PARTIAL)
        failed = sum(1 for r in results if r.status is RunStatus.FAILED)
        total_runs = job.total_runs
        rate = min(100.0, successful / total_runs * 100) if total_runs else 0.0

        return JobStatistics(
            job_id=job_id,
            total_runs=total_runs,
            stored_results=stored,
            successful_runs=successful,
            partial_runs=partial,
            failed_runs=failed,
            success_rate=rate,
            average_duration_ms=sum(r.duration_ms for r in results) / stored,
            total_migrated_tasks=sum(r.migrated_tasks for r in results),
            total_failed_tasks=sum(r.failed_tasks for r in results),
            last_run=max(r.end_time for r in results),
        )
