"""Default work-item transform.

The runner does not know what a work item means. It only needs to tell a
well-formed item from a malformed one so the run can be classified. The
default transform validates each item against :class:`TaskItem`, a pydantic
model of the fields a migrated task must carry. Extra fields pass through.

Item suppliers with different shapes inject their own ``ItemTransform``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from spine_jobs.core.enums import MigrationStrategy
from spine_jobs.core.errors import ItemValidationError


class TaskItem(BaseModel):
    """Minimal shape of a migratable task."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | int
    title: str = Field(min_length=1)
    task_type: str = Field(alias="taskType", min_length=1)
    priority: str
    status: str
    due_date: datetime | None = Field(default=None, alias="dueDate")
    estimated_hours: float | None = Field(default=None, alias="estimatedHours", ge=0)
    worker_id: str | int | None = Field(default=None, alias="workerId")


def validate_task_item(item: Mapping[str, Any], strategy: MigrationStrategy) -> None:
    """Validate ``item`` as a :class:`TaskItem`.

    ``strategy`` is accepted for the ItemTransform contract; validation does
    not depend on it. The engine rejects non-mapping items before any
    transform sees them.

    Raises:
        ItemValidationError: If the item misses or mistypes fields
    """
    try:
        TaskItem.model_validate(dict(item))
    except pydantic.ValidationError as exc:
        missing = [
            ".".join(str(part) for part in err["loc"])
            for err in exc.errors()
            if err["type"] == "missing"
        ]
        summary = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ItemValidationError(
            f"Invalid item {item.get('id')!r}: {summary}",
            missing_fields=missing,
            cause=exc,
        ) from exc


__all__ = ["TaskItem", "validate_task_item"]
