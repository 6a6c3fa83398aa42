"""
Stale-lock reaper — crash recovery for workers that died mid-job.

A worker can be killed while holding a lock (OOM, deploy, power loss) and
never write an outcome. Without this, its job would sit in PROCESSING forever.

Each cycle:
    1. Select PROCESSING jobs whose lock_expires_at is in the past
       (stamped at claim time from each job's OWN timeout_seconds)
    2. For each stale job:
         retry_count >= max_retries → DEAD_LETTER ("timed out after maximum retries")
         otherwise                  → PENDING, retry_count+1, next_retry_at = now + backoff

The release is the same conditional update the resolver uses, guarded on the
exact claim we observed (owner and locked_at) and on that claim still being
expired. If the original worker finishes at the same moment, or finishes and
claims the job again under the same worker id, the reaper's write matches
nothing and the newer state stands.

When the reaper runs is up to the caller: the worker pool runs it before
every claim (REAP_ON_CLAIM), and it can also be driven on its own schedule.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from lifecycle.backoff import next_retry_time
from lifecycle.clock import utcnow
from lifecycle.store import JobStore, LockedJob
from models.enums import JobStatus

logger = logging.getLogger(__name__)

TIMED_OUT_RETRY_MESSAGE = "timed out, will retry"
TIMED_OUT_DEAD_MESSAGE = "timed out after maximum retries"


@dataclass
class ReapedJob:
    job_id: uuid.UUID
    previous_owner: Optional[str]
    status: str
    retry_count: int
    next_retry_at: Optional[datetime] = None


class StaleLockReaper:

    def __init__(
        self,
        store: JobStore,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        self._store = store
        self._base_delay = base_delay
        self._max_delay = max_delay

    def find_stale(self, now: Optional[datetime] = None) -> list[LockedJob]:
        return self._store.list_expired(now or utcnow())

    def reap(self, now: Optional[datetime] = None) -> list[ReapedJob]:
        """Release or dead-letter every stale lock. Returns what was changed."""
        now = now or utcnow()
        reaped = []
        for job in self.find_stale(now):
            outcome = self._release(job, now)
            if outcome is not None:
                reaped.append(outcome)
        if reaped:
            logger.info(f"Reaped {len(reaped)} stale job(s)")
        return reaped

    def _release(self, job: LockedJob, now: datetime) -> Optional[ReapedJob]:
        if job.retry_count >= job.max_retries:
            values = dict(
                status=JobStatus.DEAD_LETTER.value,
                error_message=TIMED_OUT_DEAD_MESSAGE,
                next_retry_at=None,
                completed_at=now,
            )
            reaped = ReapedJob(
                job_id=job.job_id,
                previous_owner=job.locked_by,
                status=JobStatus.DEAD_LETTER.value,
                retry_count=job.retry_count,
            )
        else:
            next_at = next_retry_time(
                job.retry_count, now, base_delay=self._base_delay, max_delay=self._max_delay
            )
            values = dict(
                status=JobStatus.PENDING.value,
                error_message=TIMED_OUT_RETRY_MESSAGE,
                retry_count=job.retry_count + 1,
                next_retry_at=next_at,
            )
            reaped = ReapedJob(
                job_id=job.job_id,
                previous_owner=job.locked_by,
                status=JobStatus.PENDING.value,
                retry_count=job.retry_count + 1,
                next_retry_at=next_at,
            )

        released = self._store.release(
            job.job_id, job.locked_by, now,
            claimed_at=job.locked_at, expired_by=now, **values
        )
        if not released:
            # the owner finished (or another reaper got there) in the meantime
            logger.debug(f"Job {job.job_id} changed before it could be reaped, skipping")
            return None

        if reaped.status == JobStatus.DEAD_LETTER.value:
            logger.warning(
                f"Job {job.job_id} locked by {job.locked_by} timed out after "
                f"maximum retries, moved to dead_letter"
            )
        else:
            logger.warning(
                f"Job {job.job_id} locked by {job.locked_by} timed out, reset to pending "
                f"(retry {reaped.retry_count}/{job.max_retries})"
            )
        return reaped
