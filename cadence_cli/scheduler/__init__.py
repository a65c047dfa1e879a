"""Job scheduling engine.

The scheduler turns a submission into a bounded series of remote writes
fired at a fixed interval, and retires the job once it completes, fails
or runs out of time.
"""

from cadence_cli.scheduler.job_runner import JobRunner, RunState
from cadence_cli.scheduler.job_scheduler import JobHandle, JobScheduler
from cadence_cli.scheduler.registry import JobRecord, JobRegistry, JobStatus

__all__ = [
    "JobHandle",
    "JobRecord",
    "JobRegistry",
    "JobRunner",
    "JobScheduler",
    "JobStatus",
    "RunState",
]
