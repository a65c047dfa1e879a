"""In-memory job registry.

The registry is the only shared mutable state in Cadence. Records are
immutable snapshots: readers get the stored object, writers build a new
record with ``dataclasses.replace`` and put it back. Everything runs on
the event loop thread, so no locking is needed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Externally visible status of a job record."""

    ACTIVE = "active"  # Timer running
    COMPLETED = "completed"  # Target count reached
    EXPIRED = "expired"  # Deadline reached before the target
    FAILED = "failed"  # Only listed when failed jobs are retained

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.ACTIVE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class JobRecord:
    """Snapshot of one job.

    Attributes:
        job_id: Registry key, unique among live jobs
        url: Target URL as submitted
        resolved_id: Content identifier returned by the resolver
        target_count: Requested number of successful writes
        success_count: Confirmed successful writes so far
        status: Current status
        error: Failure reason for retained failed jobs
        created_at: When the job was accepted
        finished_at: When the job left the ACTIVE status
    """

    job_id: str
    url: str
    resolved_id: str
    target_count: int
    success_count: int = 0
    status: JobStatus = JobStatus.ACTIVE
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None


class JobRegistry:
    """Maps job ids to job records, in insertion order."""

    def __init__(self) -> None:
        self._records: Dict[str, JobRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._records

    def contains(self, job_id: str) -> bool:
        return job_id in self._records

    def put(self, job_id: str, record: JobRecord) -> None:
        """Insert or replace the record stored under ``job_id``."""
        self._records[job_id] = record

    def get(self, job_id: str) -> Optional[JobRecord]:
        return self._records.get(job_id)

    def delete(self, job_id: str) -> bool:
        """Remove a record. Absent keys are ignored.

        Returns:
            True if a record was removed
        """
        removed = self._records.pop(job_id, None) is not None
        if removed:
            logger.debug(f"Removed job {job_id} from registry")
        return removed

    def list_all(self) -> List[JobRecord]:
        return list(self._records.values())

    def allocate_id(self, resolved_id: str, timestamp_ms: int) -> str:
        """Pick a job id for a new job targeting ``resolved_id``.

        The resolved id is used as-is unless a live job already holds it,
        in which case the millisecond timestamp is appended. The timestamp
        is bumped until the id is free, so two submissions in the same
        millisecond still get distinct ids.
        """
        if resolved_id not in self._records:
            return resolved_id

        stamp = timestamp_ms
        job_id = f"{resolved_id}_{stamp}"
        while job_id in self._records:
            stamp += 1
            job_id = f"{resolved_id}_{stamp}"
        return job_id
