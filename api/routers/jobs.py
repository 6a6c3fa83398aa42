"""
Job endpoints.

POST /jobs/             → Submit work, get a job id back immediately
GET  /jobs/             → List jobs with filtering + pagination
GET  /jobs/stats        → Counts per status
GET  /jobs/dead-letter  → Dead-lettered jobs, newest first, for inspection
GET  /jobs/{job_id}     → Status projection (what clients poll)

The API layer is intentionally thin:
- Validate the request shape (Pydantic does this automatically)
- Call the submission handler / status reader
- Map domain errors to HTTP status codes

It does NOT execute jobs — that's the worker's job (or POST /process).
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from redis.asyncio import Redis
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, get_redis
from api.schemas.job import (
    JobListResponse,
    JobStats,
    JobStatusResponse,
    JobSubmit,
    JobSubmitResponse,
    JobSummary,
)
from lifecycle.exceptions import JobNotFoundError, JobValidationError, StorageError
from lifecycle.notify import notify_new_job
from lifecycle.status import get_job_status
from lifecycle.submission import submit_job
from models.enums import JobStatus
from models.job import Job

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/", response_model=JobSubmitResponse, status_code=201)
async def create_job(
    job_in: JobSubmit,
    response: Response,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
) -> JobSubmitResponse:
    """
    Submit a new job.

    201 → a new pending job was created
    200 → an identical request is already in flight; its id is returned

    The job is only written to the database here. Idle workers are nudged
    through Redis, but they would find the job on their next poll anyway.
    """
    try:
        submitted = await submit_job(
            db,
            job_in.payload,
            job_in.submitter_id,
            max_retries=job_in.max_retries,
            timeout_seconds=job_in.timeout_seconds,
        )
    except JobValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Failed to create job: {e}")

    if submitted.created or submitted.revived:
        await notify_new_job(redis, submitted.job_id)

    if submitted.created:
        message = "Job created successfully"
    else:
        response.status_code = 200
        message = "Job revived from dead letter" if submitted.revived else "Job already exists"

    return JobSubmitResponse(job_id=submitted.job_id, status=submitted.status, message=message)


@router.get("/", response_model=JobListResponse)
async def list_jobs(
    status: Optional[JobStatus] = Query(None, description="Filter by job status"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Jobs per page"),
    db: AsyncSession = Depends(get_db),
) -> JobListResponse:
    """
    List jobs, newest first, with optional status filter and pagination.

    Two queries: a COUNT for `total` and the page itself (OFFSET/LIMIT).
    """
    conditions = []
    if status:
        conditions.append(Job.status == status.value)

    total = (await db.execute(select(func.count(Job.id)).where(*conditions))).scalar() or 0

    offset = (page - 1) * page_size
    query = (
        select(Job)
        .where(*conditions)
        .order_by(Job.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )
    jobs = (await db.execute(query)).scalars().all()

    return JobListResponse(
        jobs=[JobSummary.model_validate(j) for j in jobs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=JobStats)
async def get_job_stats(
    db: AsyncSession = Depends(get_db),
) -> JobStats:
    """Counts per status, one GROUP BY query."""
    rows = (await db.execute(select(Job.status, func.count(Job.id)).group_by(Job.status))).all()
    counts = {status.value: 0 for status in JobStatus}
    counts.update({status: count for status, count in rows})
    return JobStats(total_jobs=sum(counts.values()), **counts)


@router.get("/dead-letter", response_model=list[JobSummary])
async def list_dead_letter_jobs(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> list[JobSummary]:
    """
    Jobs that exhausted their retries (or timed out on their last attempt).

    They are never reclaimed automatically. Resubmitting the same request
    creates a new job, or revives the row under DEDUP_POLICY=reset_row.
    """
    query = (
        select(Job)
        .where(Job.status == JobStatus.DEAD_LETTER.value)
        .order_by(Job.completed_at.desc())
        .limit(limit)
    )
    jobs = (await db.execute(query)).scalars().all()
    return [JobSummary.model_validate(j) for j in jobs]


@router.get("/{job_id}", response_model=JobStatusResponse, response_model_exclude_none=True)
async def get_job(
    job_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> JobStatusResponse:
    """Status projection for one job. Read-only; safe to poll."""
    try:
        view = await get_job_status(db, job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return JobStatusResponse(**view)
