"""
End-to-end lifecycle tests for JobProcessor: submit → claim → run → resolve.

Submission goes through the async handler (as the API does); processing
runs on the sync engine (as the worker does). Both share one SQLite file.
"""

from datetime import timedelta

import pytest

from lifecycle.clock import as_utc
from models.enums import JobStatus
from operations.failing import FORCED_FAILURE_MESSAGE, FailingOperation
from lifecycle.submission import submit_job
from worker.processor import JobProcessor


@pytest.fixture
def processor(session_factory, stub_operation):
    return JobProcessor(session_factory, stub_operation, base_delay=10)


@pytest.mark.asyncio
async def test_successful_job_completes(async_session, processor, store, stub_operation, now):
    submitted = await submit_job(async_session, "X")
    assert store.get(submitted.job_id).status == JobStatus.PENDING.value

    resolution = processor.process_next("w1", now=now)

    assert resolution.job_id == submitted.job_id
    assert resolution.status == JobStatus.COMPLETED.value
    assert stub_operation.calls[0][0] == "X"

    job = store.get(submitted.job_id)
    assert job.status == JobStatus.COMPLETED.value
    assert job.result == {"answer": "result for X"}
    assert job.completed_at is not None
    assert job.locked_at is None and job.locked_by is None


@pytest.mark.asyncio
async def test_failed_job_waits_for_backoff(async_session, processor, store, now):
    submitted = await submit_job(async_session, "Y")

    resolution = processor.process_next("w1", operation=FailingOperation(), now=now)

    assert resolution.status == JobStatus.FAILED.value
    assert resolution.retry_count == 1
    assert resolution.next_retry_at == now + timedelta(seconds=10)

    job = store.get(submitted.job_id)
    assert job.status == JobStatus.FAILED.value
    assert job.error_message == FORCED_FAILURE_MESSAGE
    assert as_utc(job.next_retry_at) == now + timedelta(seconds=10)

    # not eligible yet
    assert processor.process_next("w2", now=now + timedelta(seconds=5)) is None

    # eligible once the backoff has passed
    retried = processor.process_next("w2", now=now + timedelta(seconds=11))
    assert retried.job_id == submitted.job_id
    assert retried.status == JobStatus.COMPLETED.value
    assert store.get(submitted.job_id).error_message is None


@pytest.mark.asyncio
async def test_repeated_failures_dead_letter(async_session, processor, store, now):
    submitted = await submit_job(async_session, "Y", max_retries=3)
    failing = FailingOperation()

    first = processor.process_next("w1", operation=failing, now=now)
    second = processor.process_next("w1", operation=failing, now=now + timedelta(seconds=11))
    third = processor.process_next("w1", operation=failing, now=now + timedelta(seconds=32))

    assert [r.status for r in (first, second, third)] == [
        JobStatus.FAILED.value,
        JobStatus.FAILED.value,
        JobStatus.DEAD_LETTER.value,
    ]
    assert second.next_retry_at == now + timedelta(seconds=11 + 20)

    job = store.get(submitted.job_id)
    assert job.status == JobStatus.DEAD_LETTER.value
    assert job.retry_count == 3
    assert job.next_retry_at is None
    assert job.error_message == FORCED_FAILURE_MESSAGE

    # dead-lettered jobs are never picked up again
    assert processor.process_next("w1", now=now + timedelta(days=1)) is None


def test_empty_queue_returns_none(processor, now):
    assert processor.process_next("w1", now=now) is None


def test_stale_lock_reaped_before_claim(processor, store, make_job, now):
    """A job abandoned by a crashed worker is reclaimed once its backoff passes."""
    job_id = make_job(
        status=JobStatus.PROCESSING.value,
        locked_at=now - timedelta(seconds=120),
        locked_by="crashed-worker",
        timeout_seconds=60,
    )

    assert processor.process_next("w1", now=now) is None
    assert store.get(job_id).status == JobStatus.PENDING.value

    resolution = processor.process_next("w1", now=now + timedelta(seconds=11))
    assert resolution.job_id == job_id
    assert resolution.status == JobStatus.COMPLETED.value
    assert resolution.retry_count == 1


def test_reaping_can_be_disabled(session_factory, stub_operation, store, make_job, now):
    job_id = make_job(
        status=JobStatus.PROCESSING.value,
        locked_at=now - timedelta(seconds=120),
        locked_by="crashed-worker",
        timeout_seconds=60,
    )
    processor = JobProcessor(session_factory, stub_operation, reap_on_claim=False)

    assert processor.process_next("w1", now=now) is None
    assert store.get(job_id).status == JobStatus.PROCESSING.value

    assert len(processor.reaper.reap(now)) == 1
