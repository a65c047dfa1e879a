"""Tests for the per-job runner state machine."""

import asyncio
from datetime import timedelta
from typing import List
from unittest.mock import MagicMock

import pytest
from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from cadence_cli.config import SchedulerConfig
from cadence_cli.scheduler.job_runner import JobRunner, RunState
from cadence_cli.scheduler.registry import JobRecord, JobRegistry, JobStatus

URL = "https://example.com/post/1"


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
def aps() -> MagicMock:
    """Stand-in for the APScheduler instance."""
    return MagicMock()


@pytest.fixture
def terminated() -> List[JobRunner]:
    return []


@pytest.fixture
def make_runner(registry, fake_remote, aps, clock, terminated):
    def _make(target_count: int = 3, interval: float = 1.0, **config) -> JobRunner:
        registry.put(
            "post123",
            JobRecord(
                job_id="post123",
                url=URL,
                resolved_id="post123",
                target_count=target_count,
                created_at=clock(),
            ),
        )
        return JobRunner(
            job_id="post123",
            resolved_id="post123",
            target_count=target_count,
            interval_seconds=interval,
            token="token-abc",
            remote=fake_remote,
            registry=registry,
            scheduler=aps,
            config=SchedulerConfig(**config),
            clock=clock,
            on_terminated=terminated.append,
        )

    return _make


def _added(aps: MagicMock, key: str):
    """Return the add_job call registered under ``key``."""
    for call in aps.add_job.call_args_list:
        if call.kwargs.get("id") == key:
            return call
    raise AssertionError(f"no job added with id {key}")


def _removed_keys(aps: MagicMock) -> List[str]:
    return [call.args[0] for call in aps.remove_job.call_args_list]


class TestSchedule:
    """Tests for timer registration."""

    def test_registers_tick_and_deadline(self, make_runner, aps, clock) -> None:
        runner = make_runner(target_count=3, interval=2.0)
        started_at = clock()

        deadline_at = runner.schedule(started_at)

        assert deadline_at == started_at + timedelta(seconds=6)
        assert aps.add_job.call_count == 2

        tick = _added(aps, runner.tick_key)
        assert tick.args[0] == runner.tick
        trigger = tick.kwargs["trigger"]
        assert isinstance(trigger, IntervalTrigger)
        assert trigger.interval == timedelta(seconds=2)
        assert trigger.start_date == started_at + timedelta(seconds=2)

        deadline = _added(aps, runner.deadline_key)
        assert deadline.args[0] == runner.on_deadline
        assert isinstance(deadline.kwargs["trigger"], DateTrigger)
        assert deadline.kwargs["trigger"].run_date == deadline_at

    def test_tick_key_sorts_before_deadline_key(self, make_runner) -> None:
        runner = make_runner()
        assert runner.tick_key < runner.deadline_key


class TestTick:
    """Tests for the tick procedure."""

    @pytest.mark.asyncio
    async def test_success_increments(self, make_runner, registry, fake_remote) -> None:
        runner = make_runner()

        await runner.tick()

        assert fake_remote.writes == 1
        assert registry.get("post123").success_count == 1
        assert runner.state is RunState.ACTIVE

    @pytest.mark.asyncio
    async def test_reaching_target_completes(self, make_runner, registry, aps, clock) -> None:
        runner = make_runner(target_count=2, observation_window=300)

        await runner.tick()
        await runner.tick()

        record = registry.get("post123")
        assert record.success_count == 2
        assert record.status == JobStatus.COMPLETED
        assert record.finished_at == clock()
        assert runner.state is RunState.COMPLETING
        assert runner.tick_key in _removed_keys(aps)
        assert runner.deadline_key in _removed_keys(aps)

        cleanup = _added(aps, runner.cleanup_key)
        assert cleanup.args[0] == runner.cleanup
        assert cleanup.kwargs["trigger"].run_date == clock() + timedelta(seconds=300)

    @pytest.mark.asyncio
    async def test_no_tick_after_completion(self, make_runner, registry, fake_remote) -> None:
        runner = make_runner(target_count=1)

        await runner.tick()
        await runner.tick()

        assert fake_remote.writes == 1
        assert registry.get("post123").success_count == 1

    @pytest.mark.asyncio
    async def test_failure_removes_record_immediately(
        self, make_runner, registry, fake_remote, aps, terminated
    ) -> None:
        fake_remote.fail_on = {2}
        runner = make_runner(target_count=3)

        await runner.tick()
        assert registry.get("post123").success_count == 1

        await runner.tick()

        assert registry.get("post123") is None
        assert runner.state is RunState.TERMINATED
        assert terminated == [runner]
        assert runner.tick_key in _removed_keys(aps)
        assert runner.deadline_key in _removed_keys(aps)
        # No observation window on the failure path
        assert all(c.kwargs.get("id") != runner.cleanup_key for c in aps.add_job.call_args_list)

    @pytest.mark.asyncio
    async def test_no_tick_after_failure(self, make_runner, registry, fake_remote) -> None:
        fake_remote.fail_on = {1}
        runner = make_runner()

        await runner.tick()
        await runner.tick()

        assert fake_remote.writes == 1
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_failed_job_retained_when_configured(
        self, make_runner, registry, fake_remote, aps, clock
    ) -> None:
        fake_remote.fail_on = {1}
        runner = make_runner(retain_failed_jobs=True, observation_window=60)

        await runner.tick()

        record = registry.get("post123")
        assert record.status == JobStatus.FAILED
        assert "write 1 rejected" in record.error
        assert runner.state is RunState.COMPLETING
        assert _added(aps, runner.cleanup_key).kwargs["trigger"].run_date == clock() + timedelta(seconds=60)

        await runner.cleanup()
        assert registry.get("post123") is None

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self, make_runner, registry, fake_remote) -> None:
        runner = make_runner()
        fake_remote.gate = asyncio.Event()

        first = asyncio.create_task(runner.tick())
        await asyncio.sleep(0)
        assert runner.in_flight

        await runner.tick()
        assert fake_remote.writes == 1

        fake_remote.gate.set()
        await first

        assert not runner.in_flight
        assert registry.get("post123").success_count == 1

    @pytest.mark.asyncio
    async def test_record_removed_externally_is_not_recreated(
        self, make_runner, registry, terminated
    ) -> None:
        runner = make_runner()
        registry.delete("post123")

        await runner.tick()

        assert registry.get("post123") is None
        assert runner.state is RunState.TERMINATED
        assert terminated == [runner]

    @pytest.mark.asyncio
    async def test_count_never_exceeds_target(self, make_runner, registry) -> None:
        runner = make_runner(target_count=1)

        await runner.tick()
        runner._record_success()
        runner._record_success()

        assert registry.get("post123").success_count == 1


class TestDeadline:
    """Tests for the hard deadline."""

    @pytest.mark.asyncio
    async def test_deadline_before_target(self, make_runner, registry, aps, clock) -> None:
        runner = make_runner(target_count=2, interval=5.0, observation_window=300)

        await runner.on_deadline()

        record = registry.get("post123")
        assert record.success_count == 0
        assert record.status == JobStatus.EXPIRED
        assert runner.state is RunState.COMPLETING
        assert runner.tick_key in _removed_keys(aps)
        assert _added(aps, runner.cleanup_key).kwargs["trigger"].run_date == clock() + timedelta(seconds=300)

    @pytest.mark.asyncio
    async def test_tick_after_deadline_does_nothing(self, make_runner, registry, fake_remote) -> None:
        runner = make_runner()

        await runner.on_deadline()
        await runner.tick()

        assert fake_remote.writes == 0
        assert registry.get("post123").success_count == 0

    @pytest.mark.asyncio
    async def test_in_flight_write_lands_after_deadline(
        self, make_runner, registry, fake_remote
    ) -> None:
        runner = make_runner(target_count=1)
        fake_remote.gate = asyncio.Event()

        pending = asyncio.create_task(runner.tick())
        await asyncio.sleep(0)
        await runner.on_deadline()
        assert registry.get("post123").status == JobStatus.EXPIRED

        fake_remote.gate.set()
        await pending

        record = registry.get("post123")
        assert record.success_count == 1
        assert record.status == JobStatus.COMPLETED
        assert runner.state is RunState.COMPLETING

    @pytest.mark.asyncio
    async def test_in_flight_failure_after_deadline_keeps_window(
        self, make_runner, registry, fake_remote, aps, clock, terminated
    ) -> None:
        runner = make_runner(target_count=2, observation_window=300)
        fake_remote.fail_on = {1}
        fake_remote.gate = asyncio.Event()

        pending = asyncio.create_task(runner.tick())
        await asyncio.sleep(0)
        await runner.on_deadline()

        fake_remote.gate.set()
        await pending

        record = registry.get("post123")
        assert record is not None
        assert record.status == JobStatus.EXPIRED
        assert record.success_count == 0
        assert runner.state is RunState.COMPLETING
        assert terminated == []
        assert _added(aps, runner.cleanup_key).kwargs["trigger"].run_date == clock() + timedelta(seconds=300)
        assert runner.cleanup_key not in _removed_keys(aps)

    @pytest.mark.asyncio
    async def test_deadline_after_completion_is_ignored(self, make_runner, registry, aps) -> None:
        runner = make_runner(target_count=1)

        await runner.tick()
        aps.add_job.reset_mock()
        await runner.on_deadline()

        assert registry.get("post123").status == JobStatus.COMPLETED
        aps.add_job.assert_not_called()


class TestCleanup:
    """Tests for cleanup, cancellation and stop."""

    @pytest.mark.asyncio
    async def test_cleanup_removes_record(self, make_runner, registry, terminated) -> None:
        runner = make_runner(target_count=1)
        await runner.tick()

        await runner.cleanup()

        assert registry.get("post123") is None
        assert runner.state is RunState.TERMINATED
        assert terminated == [runner]

    @pytest.mark.asyncio
    async def test_cleanup_is_idempotent(self, make_runner, registry, terminated) -> None:
        runner = make_runner(target_count=1)
        await runner.tick()

        await runner.cleanup()
        await runner.cleanup()

        assert terminated == [runner]

    @pytest.mark.asyncio
    async def test_zero_window_removes_on_completion(self, make_runner, registry) -> None:
        runner = make_runner(target_count=1, observation_window=0)

        await runner.tick()

        assert registry.get("post123") is None
        assert runner.state is RunState.TERMINATED

    def test_cancel(self, make_runner, registry, aps) -> None:
        runner = make_runner()

        runner.cancel()

        assert registry.get("post123") is None
        assert runner.state is RunState.TERMINATED
        assert runner.cleanup_key in _removed_keys(aps)

    def test_stop_tolerates_missing_jobs(self, make_runner, aps) -> None:
        aps.remove_job.side_effect = JobLookupError("post123:run")
        runner = make_runner()

        runner.stop()
        runner.stop()

        assert aps.remove_job.call_count == 4
