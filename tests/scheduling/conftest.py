"""Pytest fixtures for scheduling tests."""

import threading
from datetime import UTC, datetime

import pytest

from spine_jobs.core.enums import MigrationStrategy, ScheduleKind
from spine_jobs.core.settings import JobRunnerSettings
from spine_jobs.scheduling import (
    ExecutionEngine,
    ExecutionGuard,
    InMemoryJobStore,
    InMemoryResultLedger,
    SchedulerService,
    create_scheduler,
)


@pytest.fixture
def farm_id():
    return 1


@pytest.fixture
def reference_time():
    """Fixed reference time for deterministic calculator tests."""
    return datetime(2026, 2, 16, 10, 0, 0, tzinfo=UTC)


@pytest.fixture
def settings():
    return JobRunnerSettings()


@pytest.fixture
def store():
    """Create an empty InMemoryJobStore."""
    return InMemoryJobStore()


@pytest.fixture
def ledger(store):
    """Create an InMemoryResultLedger over the test store."""
    return InMemoryResultLedger(store)


@pytest.fixture
def guard():
    """Create an ExecutionGuard."""
    return ExecutionGuard(instance_id="test-instance")


@pytest.fixture
def engine(store, ledger, guard, settings):
    """Create an ExecutionEngine with the default item transform."""
    return ExecutionEngine(store=store, ledger=ledger, guard=guard, settings=settings)


@pytest.fixture
def scheduler():
    """Create a fully wired SchedulerService."""
    return create_scheduler(settings=JobRunnerSettings(), instance_id="test-instance")


@pytest.fixture
def make_job(store, farm_id, reference_time):
    """Factory creating jobs directly in the store."""

    def _make(
        schedule=ScheduleKind.DAILY,
        scheduled_time=None,
        strategy=MigrationStrategy.MERGE,
        name="Test Job",
        farm=None,
    ):
        return store.create(
            farm if farm is not None else farm_id,
            name,
            "",
            schedule,
            scheduled_time or reference_time,
            strategy,
        )

    return _make


class BlockingTransform:
    """Item transform that blocks until released.

    Lets a test hold an execution in flight deterministically.
    """

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def __call__(self, item, strategy) -> None:
        self.entered.set()
        if not self.release.wait(timeout=5):
            raise TimeoutError("BlockingTransform was never released")


@pytest.fixture
def blocking_transform():
    return BlockingTransform()


@pytest.fixture
def blocking_scheduler(blocking_transform) -> SchedulerService:
    """Scheduler whose executions block until ``blocking_transform.release`` is set."""
    return create_scheduler(settings=JobRunnerSettings(), transform=blocking_transform)
