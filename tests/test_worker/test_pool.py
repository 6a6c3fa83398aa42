"""
Tests for WorkerPool.

run_once() is the body of every thread's loop, so it is tested directly;
the thread loop itself is covered by start/stop draining a small queue.
"""

import time
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from lifecycle.claim import WorkerIdentity
from lifecycle.exceptions import LockLostError, StorageError
from lifecycle.notify import REDIS_WAKEUP_KEY
from models.enums import JobStatus
from worker.pool import WorkerPool


@pytest.fixture
def pool(session_factory, stub_operation):
    p = WorkerPool(None, session_factory, stub_operation, identity=WorkerIdentity("test"), size=2)
    yield p
    p.stop()


def test_run_once_processes_a_job(pool, store, make_job):
    job_id = make_job()

    assert pool.run_once("w1") is True
    assert store.get(job_id).status == JobStatus.COMPLETED.value


def test_run_once_idle_queue(pool):
    assert pool.run_once("w1") is False


def test_lock_lost_counts_as_claimed(pool):
    pool._processor.process_next = MagicMock(side_effect=LockLostError("job-1", "w1"))

    assert pool.run_once("w1") is True


def test_storage_error_does_not_raise(pool):
    pool._processor.process_next = MagicMock(side_effect=StorageError("database is locked"))

    assert pool.run_once("w1") is False


def test_idle_wait_uses_redis_wakeup(session_factory, stub_operation):
    redis_client = MagicMock()
    pool = WorkerPool(redis_client, session_factory, stub_operation, size=1)

    pool._wait_for_work()

    redis_client.blpop.assert_called_once()
    assert redis_client.blpop.call_args.args[0] == REDIS_WAKEUP_KEY
    pool.stop()


def test_idle_wait_falls_back_when_redis_down(session_factory, stub_operation, monkeypatch):
    redis_client = MagicMock()
    redis_client.blpop.side_effect = RedisConnectionError("connection refused")
    pool = WorkerPool(redis_client, session_factory, stub_operation, size=1)
    monkeypatch.setattr("worker.pool.settings.WORKER_POLL_INTERVAL", 0.01)

    pool._wait_for_work()

    redis_client.blpop.assert_called_once()
    pool.stop()


def test_started_pool_drains_queue(session_factory, stub_operation, store, make_job, monkeypatch):
    monkeypatch.setattr("worker.pool.settings.WORKER_POLL_INTERVAL", 0.05)
    job_ids = [make_job() for _ in range(5)]
    pool = WorkerPool(None, session_factory, stub_operation, size=2)

    pool.start()
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        if all(store.get(j).status == JobStatus.COMPLETED.value for j in job_ids):
            break
        time.sleep(0.05)
    pool.stop()

    assert all(store.get(j).status == JobStatus.COMPLETED.value for j in job_ids)
    # each job ran exactly once
    assert len(stub_operation.calls) == 5
