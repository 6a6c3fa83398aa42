"""
Pydantic schemas for the /jobs endpoints.

These are NOT database models — they define the HTTP API contract:
- JobSubmit: what the client sends when submitting work (request body)
- JobSubmitResponse: the job id handed back immediately
- JobStatusResponse: the status projection polled by clients
- JobSummary / JobListResponse: listing and dead-letter inspection
- JobStats: counts per status

Emptiness of the payload is checked by the submission handler, not here,
so the same rule applies to every caller of submit_job().
"""

from datetime import datetime
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field


class JobSubmit(BaseModel):
    """Request body for POST /jobs/."""

    payload: Union[str, dict[str, Any]] = Field(
        ...,
        examples=["weather in Tokyo", {"query": "weather in Tokyo"}],
    )
    submitter_id: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Who is submitting; part of the idempotency key",
    )
    max_retries: Optional[int] = Field(
        default=None,
        ge=0,
        le=10,
        description="Attempt ceiling, defaults to DEFAULT_MAX_RETRIES",
    )
    timeout_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        description="Lock timeout, defaults to DEFAULT_TIMEOUT_SECONDS",
    )


class JobSubmitResponse(BaseModel):
    """Response body for POST /jobs/."""

    job_id: UUID
    status: str
    message: str


class JobStatusResponse(BaseModel):
    """Response body for GET /jobs/{job_id}. Absent fields are omitted."""

    job_id: UUID
    status: str
    payload: Any = None
    result: Optional[Any] = None
    error_message: Optional[str] = None
    retry_count: Optional[int] = None
    max_retries: Optional[int] = None
    next_retry_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class JobSummary(BaseModel):
    """One row of GET /jobs/ and GET /jobs/dead-letter."""

    id: UUID
    status: str
    submitter_id: Optional[str] = None
    payload: Any = None
    error_message: Optional[str] = None
    retry_count: int
    max_retries: int
    next_retry_at: Optional[datetime] = None
    locked_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    # from_attributes=True tells Pydantic to read from SQLAlchemy model attributes
    model_config = {"from_attributes": True}


class JobListResponse(BaseModel):
    """Paginated list of jobs — returned by GET /jobs/."""

    jobs: list[JobSummary]
    total: int       # total matching jobs (ignoring pagination)
    page: int        # current page number
    page_size: int   # jobs per page


class JobStats(BaseModel):
    """Counts per status — returned by GET /jobs/stats."""

    total_jobs: int
    pending: int
    processing: int
    completed: int
    failed: int
    dead_letter: int
