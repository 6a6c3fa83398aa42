"""
Process trigger endpoint.

POST /process                        → reap stale locks, claim one job, run it, record outcome
POST /process {"force_fail": true}   → same, but the operation always fails

Meant to be hit by an external scheduler (cron, a load test, a person with
curl) when no worker process is running. It is a plain `def` endpoint:
the lifecycle code is synchronous and may block on the external call, so
FastAPI runs it in its threadpool instead of on the event loop.

Each request claims under its own worker id, so concurrent triggers behave
exactly like concurrent workers.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_operation, get_sync_session_factory, get_worker_identity
from api.schemas.process import ProcessRequest, ProcessResponse
from lifecycle.claim import WorkerIdentity
from lifecycle.exceptions import LockLostError, StorageError
from models.enums import JobStatus
from operations.base import AbstractOperation
from operations.failing import FailingOperation
from worker.processor import JobProcessor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["process"])

_MESSAGES = {
    JobStatus.COMPLETED.value: "Job processed successfully",
    JobStatus.FAILED.value: "Job failed, retry scheduled",
    JobStatus.DEAD_LETTER.value: "Job failed permanently, moved to dead letter queue",
}


@router.post("/process", response_model=ProcessResponse, response_model_exclude_none=True)
def process_next_job(
    body: Optional[ProcessRequest] = None,
    session_factory=Depends(get_sync_session_factory),
    operation: AbstractOperation = Depends(get_operation),
    identity: WorkerIdentity = Depends(get_worker_identity),
) -> ProcessResponse:
    force_fail = body.force_fail if body else False
    if force_fail:
        operation = FailingOperation()

    worker_id = identity.next()
    processor = JobProcessor(session_factory, operation)
    logger.info(f"Process trigger as {worker_id} (force_fail: {force_fail})")

    try:
        resolution = processor.process_next(worker_id)
    except LockLostError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Failed to record job outcome: {e}")

    if resolution is None:
        return ProcessResponse(message="No pending jobs to process")

    return ProcessResponse(
        message=_MESSAGES[resolution.status],
        job_id=resolution.job_id,
        status=resolution.status,
        retry_count=resolution.retry_count,
        max_retries=resolution.max_retries,
        next_retry_at=resolution.next_retry_at,
        error_message=resolution.error_message,
    )
