"""
Shared pytest fixtures and configuration for spine-jobs tests.

This module provides:
- Auto-marking of tests by location
- Sample work-item batches
- Logging isolation (structlog contextvars cleared between tests)
"""

import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure spine_jobs package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from spine_jobs.core.logging import clear_context


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_log_context():
    """Clear bound logging context before and after each test."""
    clear_context()
    yield
    clear_context()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep SPINE_JOBS_* variables from the host out of tests."""
    import os

    for key in list(os.environ):
        if key.startswith("SPINE_JOBS_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Work-item batches
# =============================================================================


@pytest.fixture
def mock_tasks() -> list[dict[str, Any]]:
    """Two well-formed task items."""
    from spine_jobs.core.timestamps import utc_now

    return [
        {
            "id": "task-001",
            "title": "Plant crops",
            "taskType": "planting",
            "priority": "high",
            "status": "pending",
            "dueDate": utc_now(),
            "estimatedHours": 8,
            "workerId": 1,
        },
        {
            "id": "task-002",
            "title": "Water irrigation",
            "taskType": "irrigation",
            "priority": "medium",
            "status": "pending",
            "dueDate": utc_now(),
            "estimatedHours": 4,
            "workerId": 2,
        },
    ]


@pytest.fixture
def invalid_tasks() -> list[dict[str, Any]]:
    """A single item missing required fields."""
    return [{"id": "task-001"}]
