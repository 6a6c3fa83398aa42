"""
Worker process entry point.

This is a SEPARATE process from the FastAPI API server. Run as many of them
as you like, on as many machines as you like: they coordinate only through
the jobs table (guarded UPDATEs), never with each other.

Each process:
    1. Generates its worker identity once (host, pid, random token)
    2. Builds the configured external operation (EXTERNAL_OPERATION)
    3. Starts a WorkerPool of WORKER_POOL_SIZE claim loops

The main thread just waits for Ctrl+C (SIGINT) or a kill signal (SIGTERM)
to shut down gracefully. A job in flight at shutdown finishes first; a
process killed harder than that leaves its locks to the stale-lock reaper.

To run:
    python -m worker.main

In Docker:
    command: python -m worker.main
"""

import logging
import signal
import threading

from redis import Redis

from config.settings import settings
from lifecycle.claim import WorkerIdentity
from models.base import Base, sync_engine, SyncSessionLocal
from operations.registry import create_operation
from worker.pool import WorkerPool

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    # Safe to call multiple times — if the API already created the tables,
    # this is a no-op. Lets the worker start before the API.
    logger.info("Ensuring database tables exist...")
    Base.metadata.create_all(sync_engine)

    redis_client = Redis.from_url(settings.redis_url)
    identity = WorkerIdentity("worker")
    operation = create_operation(settings.EXTERNAL_OPERATION)

    pool = WorkerPool(redis_client, SyncSessionLocal, operation, identity=identity)
    pool.start()

    # ── Graceful shutdown on Ctrl+C or SIGTERM ──────────────────
    shutdown_event = threading.Event()

    def shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    logger.info(
        f"Worker {identity.base} running [{operation.name}]. Press Ctrl+C to stop."
    )

    # Block the main thread until shutdown signal
    # (using Event.wait() instead of signal.pause() for Windows compatibility)
    shutdown_event.wait()

    pool.stop()
    redis_client.close()
    logger.info("Worker process exited")


if __name__ == "__main__":
    main()
