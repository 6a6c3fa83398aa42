"""
Status reader — read-only projection of a job for the submitter.

The view always carries job_id, status, payload and the audit timestamps.
What else is shown depends on where the job is in its lifecycle:

    completed            → result, completed_at
    failed               → error_message, retry_count, max_retries, next_retry_at
    dead_letter          → error_message, retry_count, max_retries, completed_at
    pending (a retry)    → retry_count, max_retries, next_retry_at
    pending / processing → nothing extra
"""

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle.clock import as_utc
from lifecycle.exceptions import JobNotFoundError
from models.enums import JobStatus
from models.job import Job


def project_status(job: Job) -> dict[str, Any]:
    view: dict[str, Any] = {
        "job_id": job.id,
        "status": job.status,
        "payload": job.payload,
        "created_at": as_utc(job.created_at),
        "updated_at": as_utc(job.updated_at),
    }

    if job.status == JobStatus.COMPLETED.value:
        view["result"] = job.result
        view["completed_at"] = as_utc(job.completed_at)

    elif job.status in (JobStatus.FAILED.value, JobStatus.DEAD_LETTER.value):
        view["error_message"] = job.error_message
        view["retry_count"] = job.retry_count
        view["max_retries"] = job.max_retries
        if job.status == JobStatus.FAILED.value:
            view["next_retry_at"] = as_utc(job.next_retry_at)
        else:
            view["completed_at"] = as_utc(job.completed_at)

    elif job.status == JobStatus.PENDING.value and job.retry_count > 0:
        view["retry_count"] = job.retry_count
        view["max_retries"] = job.max_retries
        view["next_retry_at"] = as_utc(job.next_retry_at)

    return view


async def get_job_status(db: AsyncSession, job_id: uuid.UUID) -> dict[str, Any]:
    result = await db.execute(select(Job).where(Job.id == job_id))
    job = result.scalar_one_or_none()
    if job is None:
        raise JobNotFoundError(job_id)
    return project_status(job)
