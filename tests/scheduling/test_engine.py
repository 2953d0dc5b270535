"""Tests for ExecutionEngine."""

import threading
from datetime import timedelta

import pytest

from spine_jobs.core.enums import JobStatus, MigrationStrategy, RunStatus, ScheduleKind
from spine_jobs.core.errors import ItemValidationError, JobAlreadyRunningError, JobNotFoundError
from spine_jobs.core.settings import JobRunnerSettings
from spine_jobs.scheduling import ExecutionEngine, InMemoryResultLedger, calculator, classify


class TestClassify:
    """Test run classification from counts."""

    @pytest.mark.parametrize(
        ("total", "migrated", "expected"),
        [
            (2, 2, RunStatus.SUCCESS),
            (2, 1, RunStatus.PARTIAL),
            (2, 0, RunStatus.FAILED),
            (0, 0, RunStatus.SUCCESS),
        ],
    )
    def test_classify(self, total, migrated, expected):
        assert classify(total, migrated) is expected


class TestExecute:
    """Test a single execution end to end."""

    def test_success(self, engine, make_job, mock_tasks, store, ledger):
        job = make_job(schedule=ScheduleKind.ONCE)

        result = engine.execute(job.id, mock_tasks)

        assert result.job_id == job.id
        assert result.status is RunStatus.SUCCESS
        assert (result.total_tasks, result.migrated_tasks, result.failed_tasks) == (2, 2, 0)
        assert result.duration > timedelta(0)
        assert result.end_time > result.start_time
        assert ledger.list_for_job(job.id) == [result]

        updated = store.get(job.id)
        assert updated.status is JobStatus.COMPLETED
        assert updated.total_runs == 1
        assert updated.last_run == result.end_time

    def test_partial_batch(self, engine, make_job, mock_tasks, store):
        """One valid item and one missing required fields."""
        job = make_job(schedule=ScheduleKind.ONCE)

        result = engine.execute(job.id, [mock_tasks[0], {"id": "task-009"}])

        assert result.status is RunStatus.PARTIAL
        assert result.migrated_tasks == 1
        assert result.failed_tasks == 1
        assert result.total_tasks == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith("1: ")
        assert store.get(job.id).status is JobStatus.COMPLETED_WITH_WARNINGS

    def test_all_invalid_fails(self, engine, make_job, invalid_tasks, store):
        job = make_job(schedule=ScheduleKind.ONCE)

        result = engine.execute(job.id, invalid_tasks)

        assert result.status is RunStatus.FAILED
        assert result.failed_tasks == 1
        assert store.get(job.id).status is JobStatus.FAILED

    def test_non_mapping_items_counted_as_failed(self, engine, make_job, mock_tasks):
        job = make_job()

        result = engine.execute(job.id, [mock_tasks[0], None, "not-an-item", 42])

        assert result.migrated_tasks == 1
        assert result.failed_tasks == 3
        assert result.migrated_tasks + result.failed_tasks == result.total_tasks

    def test_empty_batch(self, engine, make_job):
        job = make_job()

        result = engine.execute(job.id, [])

        assert result.status is RunStatus.SUCCESS
        assert result.total_tasks == 0
        assert result.duration > timedelta(0)

    def test_unknown_job(self, engine, mock_tasks):
        with pytest.raises(JobNotFoundError):
            engine.execute("non-existent-id", mock_tasks)

    def test_transform_exception_does_not_abort_batch(self, store, ledger, make_job, mock_tasks):
        calls = []

        def flaky(item, strategy):
            calls.append(item["id"])
            if item["id"] == "task-001":
                raise RuntimeError("downstream rejected item")

        engine = ExecutionEngine(store=store, ledger=ledger, transform=flaky)
        job = make_job()

        result = engine.execute(job.id, mock_tasks)

        assert calls == ["task-001", "task-002"]
        assert result.status is RunStatus.PARTIAL
        assert "downstream rejected item" in result.errors[0]

    def test_strategy_passed_to_transform(self, store, ledger, make_job, mock_tasks):
        seen = []
        engine = ExecutionEngine(
            store=store, ledger=ledger, transform=lambda item, strategy: seen.append(strategy)
        )
        job = make_job(strategy=MigrationStrategy.SKIP_EXISTING)

        result = engine.execute(job.id, mock_tasks)

        assert seen == [MigrationStrategy.SKIP_EXISTING] * 2
        assert result.strategy is MigrationStrategy.SKIP_EXISTING

    def test_error_messages_capped(self, store, ledger, make_job):
        engine = ExecutionEngine(
            store=store, ledger=ledger, settings=JobRunnerSettings(max_error_messages=3)
        )
        job = make_job()

        result = engine.execute(job.id, [{"id": i} for i in range(10)])

        assert result.failed_tasks == 10
        assert len(result.errors) == 3


class TestRescheduling:
    """Test next_run after execution."""

    def test_daily_reseeded_from_end_time(self, engine, make_job, mock_tasks, store):
        job = make_job(schedule=ScheduleKind.DAILY)

        result = engine.execute(job.id, mock_tasks)

        assert store.get(job.id).next_run == result.end_time + timedelta(hours=24)

    def test_once_never_gets_next_run(self, engine, make_job, mock_tasks, store):
        job = make_job(schedule=ScheduleKind.ONCE)
        assert job.next_run is None

        result = engine.execute(job.id, mock_tasks)

        updated = store.get(job.id)
        assert updated.next_run is None
        assert updated.last_run == result.end_time
        assert calculator.is_due(updated, result.end_time + timedelta(days=3650)) is False

    def test_total_runs_counts_every_execution(self, engine, make_job, mock_tasks, invalid_tasks, store, ledger):
        job = make_job()
        for batch in (mock_tasks, invalid_tasks, mock_tasks):
            engine.execute(job.id, batch)

        assert store.get(job.id).total_runs == 3
        assert ledger.count(job.id) == 3


class TestAutoRetention:
    def test_max_results_per_job_trims_after_run(self, store, ledger, make_job, mock_tasks):
        engine = ExecutionEngine(
            store=store, ledger=ledger, settings=JobRunnerSettings(max_results_per_job=2)
        )
        job = make_job()
        results = [engine.execute(job.id, mock_tasks) for _ in range(5)]

        assert ledger.list_for_job(job.id) == results[-2:]
        assert store.get(job.id).total_runs == 5


class TestConcurrentExecution:
    """At most one execution per job may be in flight."""

    def _start_blocked(self, engine, job_id, items):
        outcome = {}

        def run():
            outcome["result"] = engine.execute(job_id, items)

        thread = threading.Thread(target=run)
        thread.start()
        return thread, outcome

    def test_second_execution_rejected(self, store, ledger, make_job, mock_tasks, blocking_transform):
        engine = ExecutionEngine(store=store, ledger=ledger, transform=blocking_transform)
        job = make_job(schedule=ScheduleKind.ONCE)

        thread, outcome = self._start_blocked(engine, job.id, mock_tasks)
        assert blocking_transform.entered.wait(timeout=5)

        assert store.get(job.id).status is JobStatus.RUNNING
        with pytest.raises(JobAlreadyRunningError, match="already running") as exc_info:
            engine.execute(job.id, mock_tasks)
        assert exc_info.value.retryable is True

        blocking_transform.release.set()
        thread.join(timeout=5)

        assert outcome["result"].status is RunStatus.SUCCESS
        assert store.get(job.id).total_runs == 1
        assert ledger.count(job.id) == 1

    def test_rejection_has_no_side_effects(self, store, ledger, make_job, mock_tasks, blocking_transform):
        engine = ExecutionEngine(store=store, ledger=ledger, transform=blocking_transform)
        job = make_job()

        thread, _ = self._start_blocked(engine, job.id, mock_tasks)
        assert blocking_transform.entered.wait(timeout=5)
        before = store.get(job.id)

        with pytest.raises(JobAlreadyRunningError):
            engine.execute(job.id, mock_tasks)

        assert store.get(job.id) == before
        assert ledger.count(job.id) == 0

        blocking_transform.release.set()
        thread.join(timeout=5)

    def test_different_jobs_run_in_parallel(self, store, ledger, make_job, mock_tasks, blocking_transform):
        engine = ExecutionEngine(store=store, ledger=ledger, transform=blocking_transform)
        first = make_job(name="First")
        second = make_job(name="Second")

        thread_a, outcome_a = self._start_blocked(engine, first.id, mock_tasks)
        thread_b, outcome_b = self._start_blocked(engine, second.id, mock_tasks)
        assert blocking_transform.entered.wait(timeout=5)

        blocking_transform.release.set()
        thread_a.join(timeout=5)
        thread_b.join(timeout=5)

        assert outcome_a["result"].job_id == first.id
        assert outcome_b["result"].job_id == second.id

    def test_racing_threads_single_winner(self, store, ledger, make_job, mock_tasks, blocking_transform):
        engine = ExecutionEngine(store=store, ledger=ledger, transform=blocking_transform)
        job = make_job()
        barrier = threading.Barrier(8)
        rejected = []
        completed = []

        def contend():
            barrier.wait()
            try:
                completed.append(engine.execute(job.id, mock_tasks))
            except JobAlreadyRunningError:
                rejected.append(True)

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for t in threads:
            t.start()
        assert blocking_transform.entered.wait(timeout=5)
        # Losers return immediately; wait for all seven rejections before releasing.
        for _ in range(100):
            if len(rejected) == 7:
                break
            threading.Event().wait(0.01)
        blocking_transform.release.set()
        for t in threads:
            t.join(timeout=5)

        assert len(completed) == 1
        assert len(rejected) == 7
        assert store.get(job.id).total_runs == 1

    def test_guard_released_after_run(self, engine, make_job, mock_tasks):
        job = make_job()
        engine.execute(job.id, mock_tasks)
        assert engine.guard.is_locked(job.id) is False
        engine.execute(job.id, mock_tasks)


def test_item_validation_error_reports_missing_fields():
    from spine_jobs.scheduling import validate_task_item

    with pytest.raises(ItemValidationError) as exc_info:
        validate_task_item({"id": "task-001"}, MigrationStrategy.MERGE)

    assert set(exc_info.value.missing_fields) == {"title", "taskType", "priority", "status"}


class TestMalformedBatch:
    """A batch that is not a sequence of items is a failed run, not an error."""

    @pytest.mark.parametrize("batch", [42, None, object()])
    def test_non_iterable_batch_recorded_as_failed(self, engine, make_job, store, ledger, batch):
        job = make_job()

        result = engine.execute(job.id, batch)

        assert result.status is RunStatus.FAILED
        assert (result.total_tasks, result.migrated_tasks, result.failed_tasks) == (0, 0, 0)
        assert result.errors[0].startswith("batch: ")
        assert result.duration > timedelta(0)
        assert ledger.list_for_job(job.id) == [result]

        updated = store.get(job.id)
        assert updated.total_runs == 1
        assert updated.status is JobStatus.FAILED
        assert updated.last_run == result.end_time

    @pytest.mark.parametrize("batch", ["task-001", {"id": "task-001"}, b"raw"])
    def test_scalar_or_mapping_batch_rejected(self, engine, make_job, batch):
        job = make_job()

        result = engine.execute(job.id, batch)

        assert result.status is RunStatus.FAILED
        assert result.total_tasks == 0

    def test_generator_batch_accepted(self, engine, make_job, mock_tasks):
        job = make_job()

        result = engine.execute(job.id, (task for task in mock_tasks))

        assert result.status is RunStatus.SUCCESS
        assert result.total_tasks == 2

    def test_non_mapping_item_never_reaches_transform(self, store, ledger, make_job, mock_tasks):
        received = []
        engine = ExecutionEngine(
            store=store, ledger=ledger, transform=lambda item, strategy: received.append(item)
        )
        job = make_job()

        result = engine.execute(job.id, [mock_tasks[0], "task-002", 7])

        assert received == [mock_tasks[0]]
        assert (result.migrated_tasks, result.failed_tasks) == (1, 2)
        assert result.errors[0] == "1: item must be a mapping, got str"

    def test_guard_released_after_failed_batch(self, engine, make_job, mock_tasks):
        job = make_job()
        engine.execute(job.id, 42)

        assert engine.guard.is_locked(job.id) is False
        assert engine.execute(job.id, mock_tasks).status is RunStatus.SUCCESS


class TestChangesDuringExecution:
    """Schedule updates and deletes made while a run is in flight."""

    def _run_in_thread(self, engine, job_id, items):
        outcome = {}

        def run():
            outcome["result"] = engine.execute(job_id, items)

        thread = threading.Thread(target=run)
        thread.start()
        return thread, outcome

    def test_reschedule_to_once_mid_run(self, store, ledger, make_job, mock_tasks, blocking_transform):
        engine = ExecutionEngine(store=store, ledger=ledger, transform=blocking_transform)
        job = make_job(schedule=ScheduleKind.DAILY)

        thread, outcome = self._run_in_thread(engine, job.id, mock_tasks)
        assert blocking_transform.entered.wait(timeout=5)
        store.update_schedule(job.id, ScheduleKind.ONCE, job.scheduled_time)
        blocking_transform.release.set()
        thread.join(timeout=5)

        updated = store.get(job.id)
        assert updated.schedule is ScheduleKind.ONCE
        assert updated.next_run is None
        end = outcome["result"].end_time
        assert calculator.is_due(updated, end + timedelta(days=3650)) is False

    def test_reschedule_to_weekly_mid_run(self, store, ledger, make_job, mock_tasks, blocking_transform):
        engine = ExecutionEngine(store=store, ledger=ledger, transform=blocking_transform)
        job = make_job(schedule=ScheduleKind.DAILY)

        thread, outcome = self._run_in_thread(engine, job.id, mock_tasks)
        assert blocking_transform.entered.wait(timeout=5)
        store.update_schedule(job.id, ScheduleKind.WEEKLY, job.scheduled_time)
        blocking_transform.release.set()
        thread.join(timeout=5)

        assert store.get(job.id).next_run == outcome["result"].end_time + timedelta(days=7)

    def test_delete_mid_run_leaves_no_results(self, store, ledger, make_job, mock_tasks, blocking_transform):
        engine = ExecutionEngine(store=store, ledger=ledger, transform=blocking_transform)
        job = make_job()

        thread, outcome = self._run_in_thread(engine, job.id, mock_tasks)
        assert blocking_transform.entered.wait(timeout=5)
        assert store.delete(job.id) is True
        ledger.remove_job(job.id)
        blocking_transform.release.set()
        thread.join(timeout=5)

        assert outcome["result"].status is RunStatus.SUCCESS
        assert store.get(job.id) is None
        assert ledger.count(job.id) == 0
        assert engine.guard.is_locked(job.id) is False

    def test_delete_between_outcome_and_append(self, store, make_job, mock_tasks):
        """A delete landing after the counter write still leaves no result behind."""

        class DeletingLedger(InMemoryResultLedger):
            def append(self, result):
                store.delete(result.job_id)
                self.remove_job(result.job_id)
                super().append(result)

        ledger = DeletingLedger(store)
        engine = ExecutionEngine(store=store, ledger=ledger)
        job = make_job()

        engine.execute(job.id, mock_tasks)

        assert ledger.count(job.id) == 0

    def test_counter_written_before_result_stored(self, store, make_job, mock_tasks):
        """Readers never see more stored results than total_runs."""
        seen = []

        class RecordingLedger(InMemoryResultLedger):
            def append(self, result):
                seen.append((store.get(result.job_id).total_runs, self.count(result.job_id)))
                super().append(result)

        engine = ExecutionEngine(store=store, ledger=RecordingLedger(store))
        job = make_job()
        for _ in range(3):
            engine.execute(job.id, mock_tasks)

        assert seen == [(1, 0), (2, 1), (3, 2)]

    def test_interrupt_restores_status_and_releases_guard(self, store, ledger, make_job, mock_tasks):
        def interrupted(item, strategy):
            raise KeyboardInterrupt

        engine = ExecutionEngine(store=store, ledger=ledger, transform=interrupted)
        job = make_job()

        with pytest.raises(KeyboardInterrupt):
            engine.execute(job.id, mock_tasks)

        assert store.get(job.id).status is JobStatus.PENDING
        assert store.get(job.id).total_runs == 0
        assert engine.guard.is_locked(job.id) is False
