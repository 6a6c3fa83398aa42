"""
Tests for the StaleLockReaper.

A processing job whose lock is older than ITS OWN timeout_seconds is
presumed abandoned:
- retries left      → back to PENDING, retry_count+1, backoff scheduled
- retries exhausted → DEAD_LETTER
"""

from datetime import timedelta

from lifecycle.clock import as_utc
from lifecycle.reaper import (
    TIMED_OUT_DEAD_MESSAGE,
    TIMED_OUT_RETRY_MESSAGE,
    StaleLockReaper,
)
from models.enums import JobStatus


def _locked(make_job, now, age_seconds, timeout_seconds=600, **overrides):
    overrides.setdefault("locked_by", "dead-worker")
    return make_job(
        status=JobStatus.PROCESSING.value,
        locked_at=now - timedelta(seconds=age_seconds),
        timeout_seconds=timeout_seconds,
        **overrides,
    )


def test_stale_job_returns_to_pending(store, make_job, now):
    job_id = _locked(make_job, now, age_seconds=601, retry_count=0)

    reaped = StaleLockReaper(store, base_delay=10).reap(now)

    assert [r.job_id for r in reaped] == [job_id]
    job = store.get(job_id)
    assert job.status == JobStatus.PENDING.value
    assert job.retry_count == 1
    assert as_utc(job.next_retry_at) == now + timedelta(seconds=10)
    assert job.error_message == TIMED_OUT_RETRY_MESSAGE
    assert job.locked_at is None
    assert job.locked_by is None
    assert job.lock_expires_at is None


def test_stale_job_at_max_retries_dead_letters(store, make_job, now):
    job_id = _locked(make_job, now, age_seconds=601, retry_count=3, max_retries=3,
                     next_retry_at=now - timedelta(minutes=5))

    reaped = StaleLockReaper(store).reap(now)

    assert reaped[0].status == JobStatus.DEAD_LETTER.value
    job = store.get(job_id)
    assert job.status == JobStatus.DEAD_LETTER.value
    assert job.error_message == TIMED_OUT_DEAD_MESSAGE
    assert job.retry_count == 3
    assert job.completed_at is not None
    assert job.next_retry_at is None
    assert job.locked_at is None and job.locked_by is None


def test_fresh_lock_is_left_alone(store, make_job, now):
    job_id = _locked(make_job, now, age_seconds=599)

    assert StaleLockReaper(store).reap(now) == []
    assert store.get(job_id).status == JobStatus.PROCESSING.value


def test_timeout_is_per_job(store, make_job, now):
    """Same lock age, different timeouts: only the short-timeout job is stale."""
    short = _locked(make_job, now, age_seconds=120, timeout_seconds=60)
    long = _locked(make_job, now, age_seconds=120, timeout_seconds=600)

    reaped = StaleLockReaper(store).reap(now)

    assert [r.job_id for r in reaped] == [short]
    assert store.get(long).status == JobStatus.PROCESSING.value


def test_reaped_job_is_claimable_after_backoff(store, make_job, now):
    job_id = _locked(make_job, now, age_seconds=601)
    StaleLockReaper(store, base_delay=10).reap(now)

    assert store.claim_next("w2", now) is None
    claimed = store.claim_next("w2", now + timedelta(seconds=11))
    assert claimed.job_id == job_id
    assert claimed.retry_count == 1


def test_reaper_loses_to_owner_finishing_first(store, make_job, now):
    """If the owner releases between the scan and the reap, nothing is overwritten."""
    job_id = _locked(make_job, now, age_seconds=601)
    reaper = StaleLockReaper(store)
    stale = reaper.find_stale(now)

    assert store.release(job_id, "dead-worker", now, status=JobStatus.COMPLETED.value,
                         result={"late": True}, completed_at=now)
    assert reaper._release(stale[0], now) is None

    assert store.get(job_id).status == JobStatus.COMPLETED.value


def test_reaper_leaves_new_claim_under_same_worker_id(store, make_job, now):
    """
    Pool threads claim under a fixed id. If the owner finishes and claims the
    job again between the reaper's scan and its write, the new lock stands.
    """
    job_id = _locked(make_job, now, age_seconds=601, locked_by="w-t0")
    reaper = StaleLockReaper(store, base_delay=10)
    stale = reaper.find_stale(now)
    later = now + timedelta(seconds=11)

    assert store.release(job_id, "w-t0", now, status=JobStatus.FAILED.value,
                         retry_count=1, error_message="boom",
                         next_retry_at=now + timedelta(seconds=10))
    assert store.claim_next("w-t0", later).job_id == job_id

    assert reaper._release(stale[0], later) is None

    job = store.get(job_id)
    assert job.status == JobStatus.PROCESSING.value
    assert job.locked_by == "w-t0"
    assert as_utc(job.locked_at) == later
    assert job.retry_count == 1


def test_stale_scan_skips_payload(store, make_job, now):
    _locked(make_job, now, age_seconds=601, payload={"large": "x" * 1000})

    stale = StaleLockReaper(store).find_stale(now)

    assert len(stale) == 1
    assert stale[0].payload is None
    assert stale[0].lock_expires_at == now - timedelta(seconds=1)
