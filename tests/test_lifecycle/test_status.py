"""Tests for the status projection shown to submitters."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from lifecycle.exceptions import JobNotFoundError
from lifecycle.status import get_job_status, project_status
from models.enums import JobStatus
from models.job import Job

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _job(**overrides) -> Job:
    values = dict(
        id=uuid.uuid4(),
        idempotency_key="k",
        payload="X",
        status=JobStatus.PENDING.value,
        retry_count=0,
        max_retries=3,
        timeout_seconds=600,
        created_at=T0,
        updated_at=T0,
    )
    values.update(overrides)
    return Job(**values)


def test_fresh_pending_job_shows_no_retry_info():
    view = project_status(_job())

    assert view["status"] == "pending"
    assert view["payload"] == "X"
    assert "retry_count" not in view
    assert "result" not in view
    assert "error_message" not in view


def test_completed_job_shows_result():
    view = project_status(_job(
        status=JobStatus.COMPLETED.value, result={"answer": 42}, completed_at=T0,
    ))

    assert view["result"] == {"answer": 42}
    assert view["completed_at"] == T0
    assert "error_message" not in view


def test_failed_job_shows_error_and_retry_info():
    view = project_status(_job(
        status=JobStatus.FAILED.value,
        error_message="API returned status 500",
        retry_count=1,
        next_retry_at=T0 + timedelta(seconds=10),
    ))

    assert view["error_message"] == "API returned status 500"
    assert view["retry_count"] == 1
    assert view["max_retries"] == 3
    assert view["next_retry_at"] == T0 + timedelta(seconds=10)
    assert "result" not in view


def test_dead_letter_job_shows_error_and_retry_info():
    view = project_status(_job(
        status=JobStatus.DEAD_LETTER.value, error_message="boom", retry_count=3, completed_at=T0,
    ))

    assert view["error_message"] == "boom"
    assert view["retry_count"] == 3
    assert view["max_retries"] == 3


def test_pending_retry_shows_retry_counts():
    view = project_status(_job(retry_count=2))

    assert view["retry_count"] == 2
    assert view["max_retries"] == 3
    assert "error_message" not in view


def test_naive_timestamps_are_read_as_utc():
    view = project_status(_job(created_at=T0.replace(tzinfo=None)))

    assert view["created_at"] == T0


@pytest.mark.asyncio
async def test_unknown_job_raises_not_found(async_session):
    with pytest.raises(JobNotFoundError):
        await get_job_status(async_session, uuid.uuid4())
