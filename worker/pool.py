"""
Worker pool — N threads, each an independent claim-and-process loop.

Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                        WorkerPool                            │
    │                                                              │
    │  ThreadPoolExecutor (4 threads, one job in flight each)      │
    │  ┌──────────────┐ ┌──────────────┐ ┌──────────────┐          │
    │  │ worker -t0   │ │ worker -t1   │ │ worker -t2   │  ...     │
    │  │ reap         │ │ reap         │ │ reap         │          │
    │  │ claim ───────┼─┼─ same rows, guarded UPDATEs ──┼──> DB    │
    │  │ execute      │ │ execute      │ │ (idle)       │          │
    │  │ resolve      │ │ resolve      │ │ BLPOP wakeup │          │
    │  └──────────────┘ └──────────────┘ └──────────────┘          │
    └──────────────────────────────────────────────────────────────┘

There is no dispatcher and no in-process coordination: every thread races
for jobs in the database exactly as separate worker processes would. The
only difference between threads is their worker id.

When a thread finds nothing to claim it waits on the Redis wake-up list
(BLPOP with a timeout of WORKER_POLL_INTERVAL), so new submissions are picked
up immediately while an idle pool still polls for retries whose backoff
expired. If Redis is down the thread simply sleeps for the poll interval.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from config.settings import settings
from lifecycle.claim import WorkerIdentity
from lifecycle.exceptions import LockLostError, StorageError
from lifecycle.notify import REDIS_WAKEUP_KEY
from operations.base import AbstractOperation
from worker.processor import JobProcessor

logger = logging.getLogger(__name__)


class WorkerPool:

    def __init__(
        self,
        redis_client: Optional[Redis],
        db_session_factory,
        operation: AbstractOperation,
        identity: Optional[WorkerIdentity] = None,
        size: Optional[int] = None,
    ):
        self._redis = redis_client
        self._size = size or settings.WORKER_POOL_SIZE
        self._identity = identity or WorkerIdentity()
        self._processor = JobProcessor(db_session_factory, operation)
        self._executor = ThreadPoolExecutor(
            max_workers=self._size,
            thread_name_prefix="job-worker",
        )
        self._stop_event = threading.Event()

    def start(self) -> None:
        """Start one claim loop per thread."""
        self._stop_event.clear()
        for slot in range(self._size):
            future: Future = self._executor.submit(self._worker_loop, self._identity.slot(slot))
            future.add_done_callback(self._on_worker_exit)
        logger.info(f"Worker pool {self._identity.base} started with {self._size} threads")

    def stop(self) -> None:
        """Signal every loop to stop after its current job, then join the threads."""
        self._stop_event.set()
        self._executor.shutdown(wait=True)
        logger.info("Worker pool stopped")

    def run_once(self, worker_id: str) -> bool:
        """
        One cycle for one worker. Returns True if a job was claimed.

        Errors are logged, not raised: a failed cycle must never kill the thread.
        The job row is the durable record of what happened.
        """
        try:
            resolution = self._processor.process_next(worker_id)
        except LockLostError as e:
            logger.warning(str(e))
            return True
        except StorageError as e:
            logger.error(f"Worker {worker_id} storage failure, job left for the reaper: {e}")
            return False
        return resolution is not None

    def _worker_loop(self, worker_id: str) -> None:
        logger.debug(f"Worker {worker_id} started")
        while not self._stop_event.is_set():
            try:
                claimed = self.run_once(worker_id)
            except Exception as e:
                logger.error(f"Worker {worker_id} loop error: {e}", exc_info=True)
                claimed = False
            if not claimed:
                self._wait_for_work()
        logger.debug(f"Worker {worker_id} stopped")

    def _wait_for_work(self) -> None:
        """Block until a wake-up token arrives or the poll interval elapses."""
        if self._redis is not None:
            try:
                self._redis.blpop(REDIS_WAKEUP_KEY, timeout=settings.WORKER_POLL_INTERVAL)
                return
            except RedisError as e:
                logger.warning(f"Redis wake-up unavailable, falling back to polling: {e}")
        self._stop_event.wait(settings.WORKER_POLL_INTERVAL)

    def _on_worker_exit(self, future: Future) -> None:
        """Log a loop that died on an unhandled exception."""
        exc = future.exception()
        if exc:
            logger.error(f"Worker loop exited unexpectedly: {exc}")
