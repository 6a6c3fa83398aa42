"""
Outcome resolver — writes a finished attempt back to the job row.

Three outcomes:
1. success                                → COMPLETED, result stored
2. failure, retry_count+1 <  max_retries  → FAILED, next_retry_at = now + backoff
3. failure, retry_count+1 >= max_retries  → DEAD_LETTER, terminal

Lifecycle on failure (max_retries=3, base delay 10s):
    PROCESSING → fail → retry_count 1 → FAILED (claimable again in 10s)
    PROCESSING → fail → retry_count 2 → FAILED (claimable again in 20s)
    PROCESSING → fail → retry_count 3 → DEAD_LETTER

All three clear the lock. The write is conditional on this worker still
owning the lock it was handed (same owner, same locked_at); if the reaper
already reclaimed the job the write is skipped and LockLostError is raised,
so the row never disagrees with what the caller is told. A StorageError
from the store likewise means nothing was applied.

Why a FAILED status instead of going straight back to PENDING?
Because the job carries its error while it waits for its backoff to expire,
and status queries can show "failed, retry 1/3" to the submitter.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from lifecycle.backoff import next_retry_time
from lifecycle.clock import utcnow
from lifecycle.exceptions import LockLostError
from lifecycle.store import JobStore, LockedJob
from models.enums import JobStatus
from worker.executor import Outcome

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    """What happened to a job after one attempt; also the process trigger's reply."""
    job_id: uuid.UUID
    status: str
    retry_count: int
    max_retries: int
    next_retry_at: Optional[datetime] = None
    error_message: Optional[str] = None
    result: Optional[dict] = None


class OutcomeResolver:

    def __init__(
        self,
        store: JobStore,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        self._store = store
        self._base_delay = base_delay
        self._max_delay = max_delay

    def resolve(self, job: LockedJob, outcome: Outcome, now: Optional[datetime] = None) -> Resolution:
        now = now or utcnow()
        if outcome.success:
            resolution = Resolution(
                job_id=job.job_id,
                status=JobStatus.COMPLETED.value,
                retry_count=job.retry_count,
                max_retries=job.max_retries,
                result=outcome.result,
            )
            values = dict(
                status=resolution.status,
                result=outcome.result,
                error_message=None,
                next_retry_at=None,
                completed_at=now,
            )
        else:
            resolution, values = self._failure(job, outcome.error_message, now)

        released = self._store.release(
            job.job_id, job.locked_by, now, claimed_at=job.locked_at, **values
        )
        if not released:
            logger.warning(
                f"Job {job.job_id} finished as {resolution.status} but worker "
                f"{job.locked_by} no longer holds its lock; outcome discarded"
            )
            raise LockLostError(job.job_id, job.locked_by)

        self._log(resolution)
        return resolution

    def _failure(self, job: LockedJob, message: str, now: datetime) -> tuple[Resolution, dict]:
        attempts = job.retry_count + 1

        if attempts >= job.max_retries:
            # ── Exhausted: dead-letter ──────────────────────────
            resolution = Resolution(
                job_id=job.job_id,
                status=JobStatus.DEAD_LETTER.value,
                retry_count=min(attempts, job.max_retries),
                max_retries=job.max_retries,
                error_message=message,
            )
            values = dict(
                status=resolution.status,
                error_message=message,
                retry_count=resolution.retry_count,
                next_retry_at=None,
                completed_at=now,
            )
            return resolution, values

        # ── Retry: FAILED until the backoff expires ─────────────
        next_at = next_retry_time(
            job.retry_count, now, base_delay=self._base_delay, max_delay=self._max_delay
        )
        resolution = Resolution(
            job_id=job.job_id,
            status=JobStatus.FAILED.value,
            retry_count=attempts,
            max_retries=job.max_retries,
            next_retry_at=next_at,
            error_message=message,
        )
        values = dict(
            status=resolution.status,
            error_message=message,
            retry_count=attempts,
            next_retry_at=next_at,
        )
        return resolution, values

    @staticmethod
    def _log(resolution: Resolution) -> None:
        if resolution.status == JobStatus.COMPLETED.value:
            logger.info(f"Job {resolution.job_id} completed")
        elif resolution.status == JobStatus.FAILED.value:
            logger.info(
                f"Job {resolution.job_id} failed, retry "
                f"{resolution.retry_count}/{resolution.max_retries} scheduled for "
                f"{resolution.next_retry_at.isoformat()}"
            )
        else:
            logger.warning(
                f"Job {resolution.job_id} moved to dead_letter after "
                f"{resolution.retry_count} attempts: {resolution.error_message}"
            )
