"""
Canonical protocol definitions for spine-jobs.

Protocols define the seams of the runner without inheritance: the engine
and facade depend on the *shape* of a job store, a result ledger and an item
transform, so an in-memory implementation, a fake in tests, or a persistent
backend can be swapped in without touching the execution contract.

Architecture:
    ::

        protocols.py
        ├── JobStore        - keyed job definitions, atomic status transitions
        ├── ResultLedger    - append-only per-job results, retention, history
        └── ItemTransform   - per-item validation/transform hook

    Consumers:
        scheduling/engine.py, scheduling/service.py

Guardrails:
    ❌ DON'T: Mutate records returned by a store; they are snapshots
    ✅ DO: Go through ``record_outcome`` / ``update_schedule``

    ❌ DON'T: Read-then-write ``status`` to claim a job
    ✅ DO: Use ``try_mark_running`` (atomic compare-and-set)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from spine_jobs.core.enums import JobStatus, MigrationStrategy, ScheduleKind
    from spine_jobs.scheduling.models import (
        HistoryEntry,
        JobResult,
        JobStatistics,
        ScheduledJob,
    )


@runtime_checkable
class JobStore(Protocol):
    """Keyed storage of job definitions, owned by the runner."""

    def create(
        self,
        farm_id: Any,
        name: str,
        description: str,
        schedule: ScheduleKind,
        scheduled_time: datetime,
        strategy: MigrationStrategy,
    ) -> ScheduledJob: ...

    def list(self, farm_id: Any) -> list[ScheduledJob]: ...

    def list_all(self) -> list[ScheduledJob]: ...

    def get(self, job_id: str) -> ScheduledJob | None: ...

    def update_schedule(
        self, job_id: str, schedule: ScheduleKind, scheduled_time: datetime
    ) -> ScheduledJob | None: ...

    def delete(self, job_id: str) -> bool: ...

    def try_mark_running(self, job_id: str) -> ScheduledJob | None: ...

    def restore_status(self, job_id: str, status: JobStatus) -> None: ...

    def record_outcome(
        self,
        job_id: str,
        status: JobStatus,
        last_run: datetime,
    ) -> ScheduledJob | None: ...


@runtime_checkable
class ResultLedger(Protocol):
    """Append-only per-job result log with bounded retention."""

    def append(self, result: JobResult) -> None: ...

    def list_for_job(self, job_id: str) -> list[JobResult]: ...

    def count(self, job_id: str) -> int: ...

    def history_for_farm(
        self, farm_id: Any, limit: int | None = None
    ) -> list[HistoryEntry]: ...

    def cleanup(self, job_id: str, max_results: int) -> int: ...

    def remove_job(self, job_id: str) -> int: ...

    def statistics(self, job_id: str) -> JobStatistics | None: ...


@runtime_checkable
class ItemTransform(Protocol):
    """Per-item hook run by the engine for every item in a batch.

    Returns normally when the item was migrated; raises (typically
    ``ItemValidationError``) when it could not be. The engine counts a raise
    as a failed item and moves on to the next one.
    """

    def __call__(self, item: Mapping[str, Any], strategy: MigrationStrategy) -> None: ...


Batch = Sequence[Any]


__all__ = [
    "JobStore",
    "ResultLedger",
    "ItemTransform",
    "Batch",
]
