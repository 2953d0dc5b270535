"""Per-job execution guard.

Manifesto:
    Two executions of the same job must never run simultaneously, while
    different jobs run freely in parallel. The guard hands out one
    non-blocking lock per job id: acquire either succeeds immediately or
    reports a conflict immediately. There is no queueing and no waiting.

Lock Flow::

    Caller A: acquire("job-1") → True   ── runs ──  release("job-1")
    Caller B: acquire("job-1") → False  (rejected, nothing recorded)
    Caller C: acquire("job-2") → True   (different job, runs in parallel)

Tags:
    spine-jobs, scheduling, concurrency, mutual-exclusion
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from uuid import uuid4

from spine_jobs.core.errors import JobAlreadyRunningError
from spine_jobs.core.logging import get_logger
from spine_jobs.core.timestamps import utc_now

logger = get_logger(__name__)


class ExecutionGuard:
    """Job-scoped mutual exclusion for in-process executions.

    Example:
        >>> guard = ExecutionGuard()
        >>> if guard.acquire_job_lock("job-123"):
        ...     try:
        ...         pass  # execute
        ...     finally:
        ...         guard.release_job_lock("job-123")
        ... else:
        ...     print("already running")
    """

    def __init__(self, instance_id: str | None = None) -> None:
        self.instance_id = instance_id or str(uuid4())
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._held: dict[str, datetime] = {}

    def _lock_for(self, job_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(job_id)
            if lock is None:
                lock = self._locks[job_id] = threading.Lock()
            return lock

    # === Job Locks ===

    def acquire_job_lock(self, job_id: str) -> bool:
        """Try to take the lock for ``job_id`` without blocking.

        Returns:
            True if acquired, False if another execution holds it
        """
        if not self._lock_for(job_id).acquire(blocking=False):
            logger.debug("execution_guard.conflict", job_id=job_id)
            return False
        with self._registry_lock:
            self._held[job_id] = utc_now()
        logger.debug("execution_guard.acquired", job_id=job_id)
        return True

    def release_job_lock(self, job_id: str) -> bool:
        """Release the lock for ``job_id``.

        Returns:
            True if released, False if it was not held
        """
        with self._registry_lock:
            lock = self._locks.get(job_id)
            if lock is None or job_id not in self._held:
                return False
            del self._held[job_id]
            lock.release()
        logger.debug("execution_guard.released", job_id=job_id)
        return True

    @contextmanager
    def hold(self, job_id: str) -> Iterator[None]:
        """Hold the job lock for the duration of the block.

        Raises:
            JobAlreadyRunningError: If the lock is already held
        """
        if not self.acquire_job_lock(job_id):
            logger.warning("job.execution.rejected", job_id=job_id, reason="already_running")
            raise JobAlreadyRunningError(job_id)
        try:
            yield
        finally:
            self.release_job_lock(job_id)

    def is_locked(self, job_id: str) -> bool:
        """Check whether an execution of ``job_id`` is in flight."""
        with self._registry_lock:
            return job_id in self._held

    def forget(self, job_id: str) -> None:
        """Drop the lock entry of a deleted job, unless it is held."""
        with self._registry_lock:
            if job_id not in self._held:
                self._locks.pop(job_id, None)

    def list_active_locks(self) -> list[dict]:
        """List held locks, oldest first."""
        with self._registry_lock:
            held = sorted(self._held.items(), key=lambda kv: kv[1])
        return [
            {"job_id": job_id, "locked_by": self.instance_id, "locked_at": locked_at.isoformat()}
            for job_id, locked_at in held
        ]
