"""
Claim & lock manager — hands one eligible job to one worker.

A worker identifies itself with a token generated once per process (plus a
per-thread or per-request suffix, so every in-flight job has a distinct
owner). The token is passed in explicitly on every claim; nothing here reads
process-global state.

    claim("host-123-ab12cd34-t0")  →  LockedJob   (job is now processing, locked to us)
                                   →  None        (nothing eligible, or another worker won)

Losing a race is a normal outcome, not an error: the caller just tries again
on its next cycle.
"""

import itertools
import logging
import os
import socket
import uuid
from datetime import datetime
from typing import Optional

from lifecycle.clock import utcnow
from lifecycle.store import JobStore, LockedJob

logger = logging.getLogger(__name__)


class WorkerIdentity:
    """Process-lifetime worker token with cheap unique sub-identities."""

    def __init__(self, role: str = "worker"):
        self.base = f"{role}-{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"
        self._sequence = itertools.count()

    def slot(self, index: int) -> str:
        """Stable id for a long-lived worker thread."""
        return f"{self.base}-t{index}"

    def next(self) -> str:
        """Fresh id for a one-off claim (e.g. one HTTP process trigger)."""
        return f"{self.base}-r{next(self._sequence)}"


class ClaimManager:

    def __init__(self, store: JobStore):
        self._store = store

    def claim(self, worker_id: str, now: Optional[datetime] = None) -> Optional[LockedJob]:
        now = now or utcnow()
        job = self._store.claim_next(worker_id, now)
        if job is None:
            return None
        logger.info(
            f"Worker {worker_id} claimed job {job.job_id} "
            f"(attempt {job.retry_count + 1}/{max(job.max_retries, 1)})"
        )
        return job
