"""
Job processor — one full processing cycle for one worker.

    1. Reap stale locks (optional, on by default)
    2. Claim the oldest eligible job       → None if nothing eligible / race lost
    3. Run the external operation          → Outcome
    4. Resolve the outcome into the row    → Resolution

Used by both entry points: every thread of the WorkerPool calls
process_next() in a loop, and POST /process calls it once per request.
A forced failure is just a different operation passed in for that call.
"""

import logging
from datetime import datetime
from typing import Optional

from config.settings import settings
from lifecycle.claim import ClaimManager
from lifecycle.reaper import StaleLockReaper
from lifecycle.store import JobStore
from operations.base import AbstractOperation
from worker.executor import JobExecutor
from worker.resolver import OutcomeResolver, Resolution

logger = logging.getLogger(__name__)


class JobProcessor:

    def __init__(
        self,
        db_session_factory,
        operation: AbstractOperation,
        reap_on_claim: Optional[bool] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        store = JobStore(db_session_factory)
        self._operation = operation
        self._reap_on_claim = settings.REAP_ON_CLAIM if reap_on_claim is None else reap_on_claim
        self._reaper = StaleLockReaper(store, base_delay=base_delay, max_delay=max_delay)
        self._claims = ClaimManager(store)
        self._executor = JobExecutor()
        self._resolver = OutcomeResolver(store, base_delay=base_delay, max_delay=max_delay)

    @property
    def reaper(self) -> StaleLockReaper:
        return self._reaper

    def process_next(
        self,
        worker_id: str,
        operation: Optional[AbstractOperation] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Resolution]:
        """
        Run one cycle. Returns None when no job was claimed.

        Raises StorageError if a store write fails, and LockLostError if the
        job was reclaimed while the operation ran; in both cases the job row
        was not changed by this call's outcome.
        """
        if self._reap_on_claim:
            self._reaper.reap(now)

        job = self._claims.claim(worker_id, now)
        if job is None:
            return None

        outcome = self._executor.execute(job, operation or self._operation)
        # resolve at the time the call finished, unless the caller pins the clock
        return self._resolver.resolve(job, outcome, now)
