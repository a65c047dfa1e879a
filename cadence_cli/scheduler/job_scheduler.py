"""Job scheduler for bounded interval jobs.

The JobScheduler accepts job submissions, resolves them against the
remote service, records them in the JobRegistry and hands each one to
a JobRunner driven by APScheduler.

Jobs live in memory only and do not survive a restart.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_MISSED,
)
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler

from cadence_cli.config import SchedulerConfig
from cadence_cli.errors import AuthError, ResolutionError, ValidationError
from cadence_cli.remote.client import RemoteService
from cadence_cli.scheduler.job_runner import JobRunner, RunState, deadline_for
from cadence_cli.scheduler.registry import JobRecord, JobRegistry, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobHandle:
    """What the submitter learns about an accepted job.

    Attributes:
        job_id: Registry key of the job
        resolved_id: Content identifier the writes target
        url: Target URL as submitted
        target_count: Requested number of successful writes
        interval_seconds: Seconds between ticks
        started_at: When the job was accepted
        deadline_at: When the job stops ticking at the latest
    """

    job_id: str
    resolved_id: str
    url: str
    target_count: int
    interval_seconds: float
    started_at: datetime
    deadline_at: datetime


class JobScheduler:
    """Creates jobs and manages their runners.

    Example:
        scheduler = JobScheduler(remote, config=config.scheduler)
        await scheduler.start()

        handle = await scheduler.start_job(credential, url, 3, 1.0)
        record = scheduler.get_job(handle.job_id)

        await scheduler.stop()
    """

    def __init__(
        self,
        remote: RemoteService,
        registry: Optional[JobRegistry] = None,
        config: Optional[SchedulerConfig] = None,
        scheduler: Optional[BaseScheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the job scheduler.

        Args:
            remote: Remote service used for resolution, tokens and writes
            registry: Job registry (a fresh one by default)
            config: Scheduler configuration
            scheduler: Pre-built APScheduler instance; one is created on
                start() when omitted
            clock: Returns the current UTC time
        """
        self._remote = remote
        self._registry = registry if registry is not None else JobRegistry()
        self._config = config or SchedulerConfig()
        self._scheduler = scheduler
        self._clock = clock or utcnow
        self._runners: Dict[str, JobRunner] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    @property
    def jobs(self) -> List[JobRecord]:
        """Get all live job records."""
        return self._registry.list_all()

    @property
    def active_runners(self) -> List[JobRunner]:
        """Runners still ticking."""
        return [r for r in self._runners.values() if r.state is RunState.ACTIVE]

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        return self._registry.get(job_id)

    def get_runner(self, job_id: str) -> Optional[JobRunner]:
        return self._runners.get(job_id)

    async def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting job scheduler...")

        if self._scheduler is None:
            self._scheduler = self._create_scheduler()

        self._setup_listeners()
        self._scheduler.start()

        self._running = True
        logger.info("Scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler and drop every live job."""
        if not self._running:
            return

        logger.info("Stopping job scheduler...")

        for runner in list(self._runners.values()):
            runner.cancel()

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Scheduler stopped")

    def _create_scheduler(self) -> AsyncIOScheduler:
        """Create and configure APScheduler instance."""
        jobstores = {"default": MemoryJobStore()}

        executors = {"default": AsyncIOExecutor()}

        job_defaults = {
            "coalesce": True,  # Combine missed runs
            "max_instances": 1,  # One instance per job
            "misfire_grace_time": self._config.misfire_grace_time,
        }

        return AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone="UTC",
        )

    def _setup_listeners(self) -> None:
        """Set up APScheduler event listeners."""
        if self._scheduler is None:
            return

        def on_job_error(event: Any) -> None:
            exception = getattr(event, "exception", "Unknown error")
            logger.error(f"Scheduled call {event.job_id} raised: {exception}")

        def on_job_missed(event: Any) -> None:
            logger.warning(f"Scheduled call {event.job_id} missed its run time")

        self._scheduler.add_listener(on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(on_job_missed, EVENT_JOB_MISSED)

    async def start_job(
        self,
        credential: str,
        target_url: str,
        target_count: int,
        interval_seconds: float,
    ) -> JobHandle:
        """Accept a job and start ticking.

        Nothing is recorded or scheduled unless both the content id and
        the token were obtained.

        Args:
            credential: Credential header string for the remote service
            target_url: URL whose content the writes target
            target_count: Number of successful writes wanted (> 0)
            interval_seconds: Seconds between writes (> 0)

        Returns:
            Handle describing the accepted job

        Raises:
            ValidationError: If the count or interval is not positive, or
                the deadline they imply is out of range
            ResolutionError: If the URL cannot be resolved
            AuthError: If no token can be derived from the credential
        """
        if self._scheduler is None:
            raise RuntimeError("Scheduler not started")

        if isinstance(target_count, bool) or not isinstance(target_count, int) or target_count <= 0:
            raise ValidationError(
                "Amount must be a positive integer", details={"amount": target_count}
            )
        if not math.isfinite(interval_seconds) or interval_seconds <= 0:
            raise ValidationError(
                "Interval must be a positive number", details={"interval": interval_seconds}
            )
        try:
            deadline_for(self._clock(), interval_seconds, target_count)
        except OverflowError as e:
            raise ValidationError(
                "Amount times interval is too long",
                details={"amount": target_count, "interval": interval_seconds},
            ) from e

        resolved_id = await self._remote.resolve_content_id(target_url)
        if not resolved_id:
            raise ResolutionError(
                "Unable to get link id: invalid URL, or the content is not visible to this account",
                details={"url": target_url},
            )

        token = await self._remote.derive_access_token(credential)
        if not token:
            raise AuthError("Unable to get access token. Please check your credential.")

        started_at = self._clock()
        job_id = self._registry.allocate_id(resolved_id, int(started_at.timestamp() * 1000))

        self._registry.put(
            job_id,
            JobRecord(
                job_id=job_id,
                url=target_url,
                resolved_id=resolved_id,
                target_count=target_count,
                created_at=started_at,
            ),
        )

        runner = JobRunner(
            job_id=job_id,
            resolved_id=resolved_id,
            target_count=target_count,
            interval_seconds=interval_seconds,
            token=token,
            remote=self._remote,
            registry=self._registry,
            scheduler=self._scheduler,
            config=self._config,
            clock=self._clock,
            on_terminated=self._forget_runner,
        )
        self._runners[job_id] = runner
        try:
            deadline_at = runner.schedule(started_at)
        except Exception:
            runner.cancel()
            raise

        logger.info(
            f"Started job {job_id} for {target_url}: "
            f"{target_count} writes every {interval_seconds}s"
        )
        return JobHandle(
            job_id=job_id,
            resolved_id=resolved_id,
            url=target_url,
            target_count=target_count,
            interval_seconds=interval_seconds,
            started_at=started_at,
            deadline_at=deadline_at,
        )

    def cancel_job(self, job_id: str) -> bool:
        """Stop a job and remove its record immediately.

        Returns:
            True if the job was live
        """
        runner = self._runners.get(job_id)
        if runner is None:
            return False
        runner.cancel()
        logger.info(f"Cancelled job {job_id}")
        return True

    def _forget_runner(self, runner: JobRunner) -> None:
        if self._runners.get(runner.job_id) is runner:
            del self._runners[runner.job_id]

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler status.

        Returns:
            Dictionary with scheduler status information
        """
        scheduled = 0
        if self._scheduler is not None and self._running:
            scheduled = len(self._scheduler.get_jobs())

        return {
            "running": self._running,
            "total_jobs": len(self._registry),
            "active_jobs": len(self.active_runners),
            "scheduled_calls": scheduled,
        }
