"""Scheduled job runner.

Manifesto:
    Recurring batch jobs need more than a timestamp column. They need a
    next-run rule per schedule kind, a guard so a job never runs twice at
    once, an immutable record of every run, and bounded history. This
    package provides all four behind one facade; the caller supplies the
    timer and the work items.

┌──────────────────────────────────────────────────────────────────────────────┐
│  Quick Start:                                                                 │
│                                                                               │
│   from spine_jobs.scheduling import create_scheduler                          │
│                                                                               │
│   scheduler = create_scheduler()                                              │
│   job = scheduler.create_job(                                                 │
│       farm_id=1,                                                              │
│       name="Nightly task migration",                                          │
│       description="",                                                         │
│       schedule="daily",                                                       │
│       scheduled_time=utc_now(),                                               │
│       strategy="merge",                                                       │
│   )                                                                           │
│                                                                               │
│   # trigger source (cron, poller, ...)                                        │
│   for due in scheduler.get_pending_jobs():                                    │
│       result = scheduler.execute(due.id, items)                               │
│                                                                               │
│  Components:                                                                  │
│   calculator    next-run rules (daily / weekly / monthly / once)              │
│   store         InMemoryJobStore (job definitions, atomic transitions)        │
│   ledger        InMemoryResultLedger (results, retention, history, stats)     │
│   lock_manager  ExecutionGuard (per-job mutual exclusion)                     │
│   engine        ExecutionEngine (runs one batch)                              │
│   service       SchedulerService (public facade)                              │
└──────────────────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ Claiming a job by reading then writing ``status``
    ✅ ``ExecutionGuard`` + ``JobStore.try_mark_running()``
    ❌ Letting one malformed item abort a batch
    ✅ Count it into ``failed_tasks`` and continue
    ❌ Wiring components individually in application code
    ✅ ``create_scheduler()`` factory function

Tags:
    spine-jobs, scheduling, job-runner, mutual-exclusion, retention
"""

from __future__ import annotations

from spine_jobs.core.protocols import ItemTransform
from spine_jobs.core.settings import JobRunnerSettings

from .calculator import due_at, is_due, next_run
from .engine import ExecutionEngine, classify
from .items import TaskItem, validate_task_item
from .ledger import InMemoryResultLedger
from .lock_manager import ExecutionGuard
from .models import HistoryEntry, JobResult, JobStatistics, ScheduledJob
from .service import SchedulerService
from .store import InMemoryJobStore

__all__ = [
    # Models
    "ScheduledJob",
    "JobResult",
    "JobStatistics",
    "HistoryEntry",
    # Calculator
    "next_run",
    "due_at",
    "is_due",
    # Storage
    "InMemoryJobStore",
    "InMemoryResultLedger",
    # Execution
    "ExecutionGuard",
    "ExecutionEngine",
    "classify",
    "TaskItem",
    "validate_task_item",
    # Service
    "SchedulerService",
    "create_scheduler",
]


def create_scheduler(
    settings: JobRunnerSettings | None = None,
    transform: ItemTransform | None = None,
    instance_id: str | None = None,
) -> SchedulerService:
    """Factory function to create a fully wired scheduler service.

    Args:
        settings: Runtime settings (read from the environment if omitted)
        transform: Per-item transform (defaults to :func:`validate_task_item`)
        instance_id: Identifier reported by the execution guard

    Returns:
        Configured SchedulerService backed by in-memory storage
    """
    settings = settings or JobRunnerSettings()
    store = InMemoryJobStore()
    ledger = InMemoryResultLedger(store)
    engine = ExecutionEngine(
        store=store,
        ledger=ledger,
        guard=ExecutionGuard(instance_id=instance_id),
        transform=transform,
        settings=settings,
    )
    return SchedulerService(store=store, ledger=ledger, engine=engine, settings=settings)
