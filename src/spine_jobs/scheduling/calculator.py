"""Schedule calculator - next-run computation.

Pure, deterministic mapping from ``(schedule kind, reference time)`` to the
next execution time. No clock reads, no storage.

┌──────────────────────────────────────────────────────────────────────┐
│  Kind      Rule                                                      │
│  ───────   ─────────────────────────────────────────────────────     │
│  daily     reference + 24h                                           │
│  weekly    reference + 7 days                                        │
│  monthly   reference + 1 calendar month (day clipped to month end)   │
│  once      no next run                                               │
└──────────────────────────────────────────────────────────────────────┘

Recurring jobs are re-seeded from the execution's ``end_time`` after every
run, so a late or slow run shifts the cadence instead of piling up missed
slots.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from spine_jobs.core.enums import ScheduleKind, parse_enum
from spine_jobs.core.timestamps import ensure_utc
from spine_jobs.scheduling.models import ScheduledJob

DAY = timedelta(hours=24)
WEEK = timedelta(days=7)


def next_run(schedule: ScheduleKind | str, reference: datetime) -> datetime | None:
    """Compute the next execution time after ``reference``.

    Args:
        schedule: Schedule kind
        reference: Seed time (scheduled time or last end time)

    Returns:
        Next run datetime in UTC, or None for one-time schedules

    Raises:
        InvalidScheduleError: If ``schedule`` is not a known kind
    """
    kind = parse_enum(ScheduleKind, schedule, "schedule")
    reference = ensure_utc(reference)

    match kind:
        case ScheduleKind.DAILY:
            return reference + DAY
        case ScheduleKind.WEEKLY:
            return reference + WEEK
        case ScheduleKind.MONTHLY:
            return reference + relativedelta(months=1)
        case ScheduleKind.ONCE:
            return None


def due_at(job: ScheduledJob) -> datetime | None:
    """Instant at which ``job`` becomes pending.

    Never-run jobs are due at their scheduled time. After the first run the
    stored ``next_run`` applies; ``None`` means never due again.
    """
    if job.last_run is None:
        return ensure_utc(job.scheduled_time)
    return job.next_run


def is_due(job: ScheduledJob, now: datetime) -> bool:
    """True if ``job`` is due at ``now`` and not currently running."""
    if job.is_running:
        return False
    when = due_at(job)
    return when is not None and when <= ensure_utc(now)


__all__ = ["next_run", "due_at", "is_due", "DAY", "WEEK"]
