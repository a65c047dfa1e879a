"""Per-job runner.

A JobRunner drives one job from acceptance to removal. It owns the
job's APScheduler entries (tick, deadline, cleanup) and is the only
writer of the job's registry record.

States:
    ACTIVE      ticks are issued
    COMPLETING  target or deadline reached; the record stays listed
                until the observation window elapses
    TERMINATED  record removed, nothing scheduled
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from enum import Enum, auto
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from cadence_cli.config import SchedulerConfig
from cadence_cli.remote.client import RemoteService
from cadence_cli.scheduler.registry import JobRegistry, JobStatus, utcnow

logger = logging.getLogger(__name__)


def deadline_for(started_at: datetime, interval_seconds: float, target_count: int) -> datetime:
    """When a job started at ``started_at`` stops ticking at the latest.

    Raises:
        OverflowError: If the deadline lies outside the datetime range
    """
    return started_at + timedelta(seconds=interval_seconds) * target_count


class RunState(Enum):
    """Lifecycle state of a runner."""

    ACTIVE = auto()
    COMPLETING = auto()
    TERMINATED = auto()


class JobRunner:
    """Drives the ticks, deadline and cleanup of a single job.

    Example:
        runner = JobRunner(job_id, resolved_id, 3, 1.0, token,
                           remote, registry, aps_scheduler, config)
        deadline_at = runner.schedule(started_at)
    """

    def __init__(
        self,
        job_id: str,
        resolved_id: str,
        target_count: int,
        interval_seconds: float,
        token: str,
        remote: RemoteService,
        registry: JobRegistry,
        scheduler: BaseScheduler,
        config: Optional[SchedulerConfig] = None,
        clock: Callable[[], datetime] = utcnow,
        on_terminated: Optional[Callable[["JobRunner"], None]] = None,
    ) -> None:
        self.job_id = job_id
        self.resolved_id = resolved_id
        self.target_count = target_count
        self.interval_seconds = interval_seconds
        self.state = RunState.ACTIVE
        self._token = token
        self._remote = remote
        self._registry = registry
        self._scheduler = scheduler
        self._config = config or SchedulerConfig()
        self._clock = clock
        self._on_terminated = on_terminated
        self._in_flight = False

    # APScheduler keys. Ties in run time are dispatched in id order, so
    # the tick key must sort before the deadline key.
    @property
    def tick_key(self) -> str:
        return f"{self.job_id}:run"

    @property
    def deadline_key(self) -> str:
        return f"{self.job_id}:stop"

    @property
    def cleanup_key(self) -> str:
        return f"{self.job_id}:sweep"

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def schedule(self, started_at: datetime) -> datetime:
        """Register the recurring tick and the hard deadline.

        The first tick fires one interval after ``started_at``. The deadline
        coincides with the last tick a fully successful job would need.

        Returns:
            When the deadline fires
        """
        interval = timedelta(seconds=self.interval_seconds)
        deadline_at = deadline_for(started_at, self.interval_seconds, self.target_count)

        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(
                seconds=self.interval_seconds,
                start_date=started_at + interval,
                timezone="UTC",
            ),
            id=self.tick_key,
            name=f"Tick {self.job_id}",
            replace_existing=True,
        )
        self._scheduler.add_job(
            self.on_deadline,
            trigger=DateTrigger(run_date=deadline_at, timezone="UTC"),
            id=self.deadline_key,
            name=f"Deadline {self.job_id}",
            replace_existing=True,
        )
        logger.debug(f"Scheduled job {self.job_id}: every {self.interval_seconds}s until {deadline_at}")
        return deadline_at

    async def tick(self) -> None:
        """Issue one remote write and account for its outcome."""
        if self.state is not RunState.ACTIVE:
            return

        if self._in_flight:
            logger.warning(f"Job {self.job_id}: previous write still in flight, skipping tick")
            return

        self._in_flight = True
        try:
            await self._remote.write(self.resolved_id, self._token)
        except Exception as e:
            self.fail(str(e))
            return
        finally:
            self._in_flight = False

        self._record_success()

    def _record_success(self) -> None:
        # A write issued while ACTIVE still counts if the deadline moved the
        # job to COMPLETING meanwhile.
        if self.state is RunState.TERMINATED:
            return

        record = self._registry.get(self.job_id)
        if record is None:
            logger.warning(f"Job {self.job_id} vanished from the registry, stopping")
            self._terminate()
            return

        if record.success_count >= record.target_count:
            return

        count = record.success_count + 1
        if count < record.target_count:
            self._registry.put(self.job_id, replace(record, success_count=count))
            logger.debug(f"Job {self.job_id}: {count}/{record.target_count}")
            return

        self._registry.put(
            self.job_id,
            replace(
                record,
                success_count=count,
                status=JobStatus.COMPLETED,
                finished_at=record.finished_at or self._clock(),
            ),
        )
        logger.info(f"Job {self.job_id} reached its target of {count}")
        if self.state is RunState.ACTIVE:
            self._complete(JobStatus.COMPLETED)

    async def on_deadline(self) -> None:
        """Hard deadline: stop ticking whether or not the target was met."""
        if self.state is not RunState.ACTIVE:
            return

        record = self._registry.get(self.job_id)
        done = record.success_count if record else 0
        logger.info(f"Job {self.job_id} hit its deadline at {done}/{self.target_count}")
        self._complete(JobStatus.EXPIRED)

    def _complete(self, status: JobStatus) -> None:
        self.state = RunState.COMPLETING
        self.stop()

        record = self._registry.get(self.job_id)
        if record is not None and not record.status.is_terminal:
            self._registry.put(
                self.job_id,
                replace(record, status=status, finished_at=self._clock()),
            )
        self._schedule_cleanup()

    def fail(self, reason: str) -> None:
        """Terminate the job after a failed write.

        The record is removed at once unless failed jobs are retained, in
        which case it is marked FAILED and kept for the observation window.
        A failure landing after the job already finished changes nothing.
        """
        if self.state is RunState.TERMINATED:
            return

        if self.state is RunState.COMPLETING:
            # Already finished; the record keeps its observation window
            logger.warning(f"Job {self.job_id}: write failed after the job finished: {reason}")
            return

        logger.error(f"Job {self.job_id} failed, terminating: {reason}")
        self.stop()
        self._remove_job(self.cleanup_key)

        record = self._registry.get(self.job_id)
        if self._config.retain_failed_jobs and record is not None:
            self.state = RunState.COMPLETING
            self._registry.put(
                self.job_id,
                replace(
                    record,
                    status=JobStatus.FAILED,
                    error=reason,
                    finished_at=self._clock(),
                ),
            )
            self._schedule_cleanup()
            return

        self._registry.delete(self.job_id)
        self._terminate()

    def _schedule_cleanup(self) -> None:
        window = self._config.observation_window
        if window <= 0:
            self._registry.delete(self.job_id)
            self._terminate()
            return

        run_date = self._clock() + timedelta(seconds=window)
        self._scheduler.add_job(
            self.cleanup,
            trigger=DateTrigger(run_date=run_date, timezone="UTC"),
            id=self.cleanup_key,
            name=f"Cleanup {self.job_id}",
            replace_existing=True,
        )
        logger.debug(f"Job {self.job_id} will be removed at {run_date}")

    async def cleanup(self) -> None:
        """Remove the record once the observation window has elapsed."""
        if self.state is RunState.TERMINATED:
            return
        self._registry.delete(self.job_id)
        logger.info(f"Job {self.job_id} removed after observation window")
        self._terminate()

    def cancel(self) -> None:
        """Stop everything and drop the record immediately."""
        if self.state is RunState.TERMINATED:
            return
        self.stop()
        self._remove_job(self.cleanup_key)
        self._registry.delete(self.job_id)
        self._terminate()

    def stop(self) -> None:
        """Remove the tick and deadline timers. Safe to call repeatedly."""
        self._remove_job(self.tick_key)
        self._remove_job(self.deadline_key)

    def _remove_job(self, key: str) -> None:
        try:
            self._scheduler.remove_job(key)
        except JobLookupError:
            pass

    def _terminate(self) -> None:
        self.stop()
        self.state = RunState.TERMINATED
        if self._on_terminated is not None:
            self._on_terminated(self)
