"""
Submission handler — turns a request into exactly one in-flight job.

    submit("weather in Tokyo", "user-1")  → new job, status pending          (created=True)
    submit("weather in Tokyo", "user-1")  → SAME job id, its current status  (created=False)

Dedup works on an idempotency key derived from (submitter, payload). While a
job with that key is in flight (pending, processing, or failed awaiting its
retry) every resubmission returns it instead of inserting. The read-then-insert
here has a race window; the partial unique index on idempotency_key is what
actually rejects the second concurrent insert, and we coalesce that rejection
into "return the existing job".

Once a job is terminal, what a resubmission does is an explicit policy:
- DedupPolicy.NEW_ROW:   insert a fresh job; old rows stay for audit
- DedupPolicy.RESET_ROW: if the latest job for the key is dead-lettered,
                         revive that row (pending, retry_count 0) instead
"""

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from lifecycle.clock import utcnow
from lifecycle.exceptions import JobValidationError, StorageError
from models.enums import IN_FLIGHT_STATUSES, DedupPolicy, JobStatus
from models.job import Job

logger = logging.getLogger(__name__)

ANONYMOUS_SUBMITTER = "anonymous"


@dataclass
class SubmissionResult:
    job_id: uuid.UUID
    status: str
    created: bool            # False → an existing in-flight job was returned
    revived: bool = False    # True → a dead-lettered row was reset (RESET_ROW policy)


def validate_payload(payload: Any) -> None:
    if payload is None:
        raise JobValidationError("payload is required")
    if isinstance(payload, str) and not payload.strip():
        raise JobValidationError("payload must not be empty")
    if isinstance(payload, (dict, list)) and not payload:
        raise JobValidationError("payload must not be empty")


def make_idempotency_key(payload: Any, submitter_id: Optional[str] = None) -> str:
    """SHA-256 of "<submitter or 'anonymous'>:<canonical payload>"."""
    if isinstance(payload, str):
        canonical = payload
    else:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    raw = f"{submitter_id or ANONYMOUS_SUBMITTER}:{canonical}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


async def submit_job(
    db: AsyncSession,
    payload: Any,
    submitter_id: Optional[str] = None,
    *,
    max_retries: Optional[int] = None,
    timeout_seconds: Optional[int] = None,
    dedup_policy: Optional[DedupPolicy] = None,
) -> SubmissionResult:
    """
    Create a pending job, or return the in-flight job for the same request.

    "In flight" is pending, processing or failed: a job waiting out its retry
    backoff still coalesces resubmissions. This is the same status set the
    partial unique index on idempotency_key covers, so a failed job moving
    back to processing never collides with a row inserted in the meantime.
    """
    validate_payload(payload)
    key = make_idempotency_key(payload, submitter_id)
    policy = DedupPolicy(dedup_policy or settings.DEDUP_POLICY)

    try:
        existing = await _find_in_flight(db, key)
        if existing is not None:
            logger.info(f"Duplicate submission coalesced into job {existing.id} ({existing.status})")
            return SubmissionResult(job_id=existing.id, status=existing.status, created=False)

        if policy == DedupPolicy.RESET_ROW:
            revived = await _revive_dead_letter(db, key)
            if revived is not None:
                return revived

        job = Job(
            idempotency_key=key,
            submitter_id=submitter_id,
            payload=payload,
            status=JobStatus.PENDING.value,
            retry_count=0,
            max_retries=max_retries if max_retries is not None else settings.DEFAULT_MAX_RETRIES,
            timeout_seconds=(
                timeout_seconds if timeout_seconds is not None else settings.DEFAULT_TIMEOUT_SECONDS
            ),
        )
        db.add(job)
        await db.commit()

    except IntegrityError:
        # Lost the insert race to an identical concurrent submission
        await db.rollback()
        return await _coalesce_after_conflict(db, key)

    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to create job: {e}")
        raise StorageError(f"Failed to create job: {e}") from e

    logger.info(f"Job {job.id} created (max_retries={job.max_retries}, timeout={job.timeout_seconds}s)")
    return SubmissionResult(job_id=job.id, status=JobStatus.PENDING.value, created=True)


async def _find_in_flight(db: AsyncSession, key: str) -> Optional[Job]:
    result = await db.execute(
        select(Job)
        .where(Job.idempotency_key == key, Job.status.in_(IN_FLIGHT_STATUSES))
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _revive_dead_letter(db: AsyncSession, key: str) -> Optional[SubmissionResult]:
    latest = (
        await db.execute(
            select(Job)
            .where(Job.idempotency_key == key)
            .order_by(Job.created_at.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if latest is None or latest.status != JobStatus.DEAD_LETTER.value:
        return None

    now = utcnow()
    result = await db.execute(
        update(Job)
        .where(Job.id == latest.id, Job.status == JobStatus.DEAD_LETTER.value)
        .values(
            status=JobStatus.PENDING.value,
            retry_count=0,
            error_message=None,
            result=None,
            next_retry_at=None,
            completed_at=None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return None
    await db.commit()
    logger.info(f"Dead-lettered job {latest.id} revived by resubmission")
    return SubmissionResult(
        job_id=latest.id, status=JobStatus.PENDING.value, created=False, revived=True
    )


async def _coalesce_after_conflict(db: AsyncSession, key: str) -> SubmissionResult:
    try:
        existing = await _find_in_flight(db, key)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to create job: {e}") from e
    if existing is None:
        raise StorageError("Idempotency conflict but no in-flight job found")
    logger.info(f"Concurrent duplicate submission coalesced into job {existing.id}")
    return SubmissionResult(job_id=existing.id, status=existing.status, created=False)
