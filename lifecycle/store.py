"""
Job store — the compare-and-set primitives every worker-side transition uses.

All correctness under concurrency lives here, in the WHERE clauses:

    claim:   UPDATE jobs SET status='processing', locked_at=?, locked_by=?, lock_expires_at=?
             WHERE id=? AND status IN ('pending','failed') AND locked_at IS NULL

    outcome: UPDATE jobs SET ...
             WHERE id=? AND status='processing' AND locked_by=? AND locked_at=?

    reap:    UPDATE jobs SET ...
             WHERE id=? AND status='processing' AND locked_by=? AND locked_at=?
                   AND lock_expires_at < now

Whoever's UPDATE matches the row first wins; everyone else sees rowcount 0.
There is never a read followed by an unconditional write, so two workers
cannot both process a job, and a worker whose lock was reclaimed by the
reaper cannot overwrite what happened after. Guarding on locked_at as well
as locked_by pins a write to one particular claim: a thread that finishes a
job and immediately claims it again under the same worker id holds a new
lock that an earlier snapshot cannot touch.

Every method opens and closes its own short session (same rule as the
executor threads: one session per unit of work, never shared).
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterator, Optional

from sqlalchemy import Row, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lifecycle.clock import as_utc, utcnow
from lifecycle.exceptions import StorageError
from models.enums import CLAIMABLE_STATUSES, JobStatus
from models.job import Job

logger = logging.getLogger(__name__)


@dataclass
class LockedJob:
    """
    Snapshot of a job row taken while it is (or was) locked by a worker.

    Plain data, detached from any session, so it can be handed to the
    executor thread and the resolver without holding a connection open.
    """
    job_id: uuid.UUID
    payload: Any
    retry_count: int
    max_retries: int
    timeout_seconds: int
    locked_at: Optional[datetime]
    locked_by: Optional[str]
    lock_expires_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> "LockedJob":
        return cls(
            job_id=job.id,
            payload=job.payload,
            retry_count=job.retry_count,
            max_retries=job.max_retries,
            timeout_seconds=job.timeout_seconds,
            locked_at=as_utc(job.locked_at),
            locked_by=job.locked_by,
            lock_expires_at=as_utc(job.lock_expires_at),
        )


class JobStore:

    def __init__(self, session_factory):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Job store operation failed: {e}")
            raise StorageError(str(e)) from e
        finally:
            session.close()

    # ── Reads ───────────────────────────────────────────────────

    def get(self, job_id: uuid.UUID) -> Optional[Job]:
        with self._session() as session:
            job = session.get(Job, job_id)
            if job is not None:
                session.expunge(job)
            return job

    def list_expired(self, now: datetime) -> list[LockedJob]:
        """
        Processing jobs whose lock expired before `now`, oldest expiry first.

        Reaper input. Only the lock and retry columns are read; the payload
        is left in the database.
        """
        with self._session() as session:
            rows = session.execute(
                select(
                    Job.id,
                    Job.retry_count,
                    Job.max_retries,
                    Job.timeout_seconds,
                    Job.locked_at,
                    Job.locked_by,
                    Job.lock_expires_at,
                )
                .where(
                    Job.status == JobStatus.PROCESSING.value,
                    Job.lock_expires_at < now,
                )
                .order_by(Job.lock_expires_at)
            ).all()
            return [
                LockedJob(
                    job_id=row.id,
                    payload=None,
                    retry_count=row.retry_count,
                    max_retries=row.max_retries,
                    timeout_seconds=row.timeout_seconds,
                    locked_at=as_utc(row.locked_at),
                    locked_by=row.locked_by,
                    lock_expires_at=as_utc(row.lock_expires_at),
                )
                for row in rows
            ]

    # ── Claim ───────────────────────────────────────────────────

    def claim_next(self, worker_id: str, now: Optional[datetime] = None) -> Optional[LockedJob]:
        """
        Lock the oldest eligible job for `worker_id`, or return None.

        Eligible = status pending/failed, no lock, and next_retry_at unset or due.
        The candidate SELECT uses FOR UPDATE SKIP LOCKED where the engine supports
        it (PostgreSQL), so concurrent workers usually pick different rows; the
        guarded UPDATE is what actually makes the claim exclusive on every engine.
        """
        now = now or utcnow()
        with self._session() as session:
            candidate = self._find_candidate(session, now)
            if candidate is None:
                session.rollback()
                return None
            if not self._try_lock(session, candidate, worker_id, now):
                session.rollback()
                logger.debug(f"Worker {worker_id} lost the claim race for job {candidate.id}")
                return None
            session.commit()
            return LockedJob.from_job(session.get(Job, candidate.id))

    @staticmethod
    def _find_candidate(session: Session, now: datetime) -> Optional[Row]:
        """The oldest eligible job as an (id, timeout_seconds) row, or None."""
        query = (
            select(Job.id, Job.timeout_seconds)
            .where(
                Job.status.in_(CLAIMABLE_STATUSES),
                or_(Job.next_retry_at.is_(None), Job.next_retry_at <= now),
                Job.locked_at.is_(None),
            )
            .order_by(Job.created_at)
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        return session.execute(query).first()

    @staticmethod
    def _try_lock(session: Session, candidate: Row, worker_id: str, now: datetime) -> bool:
        result = session.execute(
            update(Job)
            .where(
                Job.id == candidate.id,
                Job.status.in_(CLAIMABLE_STATUSES),
                Job.locked_at.is_(None),
            )
            .values(
                status=JobStatus.PROCESSING.value,
                locked_at=now,
                locked_by=worker_id,
                lock_expires_at=now + timedelta(seconds=candidate.timeout_seconds),
                error_message=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ── Transitions out of processing ───────────────────────────

    def release(
        self,
        job_id: uuid.UUID,
        worker_id: str,
        now: datetime,
        *,
        claimed_at: Optional[datetime] = None,
        expired_by: Optional[datetime] = None,
        **values,
    ) -> bool:
        """
        Apply `values` to a processing job only if `worker_id` still holds its lock.

        claimed_at narrows the guard to the claim made at that instant, and
        expired_by additionally requires that lock to have expired before it
        (the reaper passes its scan time). Always clears the lock columns.
        Returns False (and writes nothing) when the lock has moved on.
        """
        conditions = [
            Job.id == job_id,
            Job.status == JobStatus.PROCESSING.value,
            Job.locked_by == worker_id,
        ]
        if claimed_at is not None:
            conditions.append(Job.locked_at == claimed_at)
        if expired_by is not None:
            conditions.append(Job.lock_expires_at < expired_by)

        with self._session() as session:
            result = session.execute(
                update(Job)
                .where(*conditions)
                .values(
                    locked_at=None,
                    locked_by=None,
                    lock_expires_at=None,
                    updated_at=now,
                    **values,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True
