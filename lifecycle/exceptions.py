"""
Error taxonomy for the job lifecycle.

Where each error goes:
- JobValidationError, JobNotFoundError → returned synchronously to the caller
  (HTTP 422 / 404)
- ExternalOperationError → never escapes the worker; the resolver records its
  message on the job row and decides retry vs dead-letter
- StorageError → a store write failed and was rolled back; the outcome was NOT
  applied, so the job stays locked until the reaper reclaims it
- LockLostError → the worker finished, but its lock was already taken away
  (the reaper presumed it dead); the late outcome is discarded

Losing a claim race is not an error at all: the claim returns None.
"""


class JobQueueError(Exception):
    """Base class for every error raised by the lifecycle code."""


class JobValidationError(JobQueueError):
    """Submission rejected before touching the store (e.g. empty payload)."""


class JobNotFoundError(JobQueueError):

    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class ExternalOperationError(JobQueueError):
    """The external operation failed or returned a non-success response."""


class StorageError(JobQueueError):
    """An insert or update against the job store failed."""


class LockLostError(JobQueueError):

    def __init__(self, job_id, worker_id: str):
        self.job_id = job_id
        self.worker_id = worker_id
        super().__init__(
            f"Job {job_id} is no longer locked by {worker_id}; outcome discarded"
        )
