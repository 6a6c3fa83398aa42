"""
Job executor — runs the external operation for one claimed job.

This is the code that actually DOES THE WORK, and nothing else: it does not
touch the database. Given a locked job and an operation it returns an
Outcome, which the OutcomeResolver then writes back.

    operation.run(...) returns dict      → Outcome.ok(result)
    operation.run(...) raises anything   → Outcome.failed("<message>")

Every fault becomes a failed outcome; nothing is silently dropped. The call
may block for as long as the operation takes; the worker holding the job is
busy until then (one job in flight per worker).
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from lifecycle.clock import utcnow
from lifecycle.store import LockedJob
from operations.base import AbstractOperation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    success: bool
    result: Optional[dict] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, result: dict) -> "Outcome":
        return cls(success=True, result=result)

    @classmethod
    def failed(cls, message: str) -> "Outcome":
        return cls(success=False, error_message=message)


class JobExecutor:

    def execute(self, job: LockedJob, operation: AbstractOperation) -> Outcome:
        job_id = str(job.job_id)
        start_time = time.monotonic()
        try:
            result = operation.run(job.payload, job_id, utcnow())
        except Exception as e:
            elapsed = time.monotonic() - start_time
            message = str(e) or e.__class__.__name__
            logger.error(f"Job {job_id} [{operation.name}] failed after {elapsed:.3f}s: {message}")
            return Outcome.failed(message)

        elapsed = time.monotonic() - start_time
        logger.info(f"Job {job_id} [{operation.name}] succeeded in {elapsed:.3f}s")
        return Outcome.ok(result)
