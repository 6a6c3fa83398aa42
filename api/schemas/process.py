"""
Pydantic schemas for the /process trigger.

ProcessRequest: optional body; force_fail swaps in the failing operation.
ProcessResponse: "nothing to do", or the outcome of the one job processed.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class ProcessRequest(BaseModel):
    """Request body for POST /process."""

    force_fail: bool = False


class ProcessResponse(BaseModel):
    """Response body for POST /process. Fields absent when no job was processed."""

    message: str
    job_id: Optional[UUID] = None
    status: Optional[str] = None
    retry_count: Optional[int] = None
    max_retries: Optional[int] = None
    next_retry_at: Optional[datetime] = None
    error_message: Optional[str] = None
