"""
Shared enumerations used across the entire project.

Using Python enums (inheriting from str) means:
- They serialize to JSON automatically ("pending", not "JobStatus.PENDING")
- They work as SQLAlchemy column values
- They work as FastAPI query parameters
- Typos become immediate errors instead of silent bugs
"""

import enum


class JobStatus(str, enum.Enum):
    PENDING = "pending"          # submitted (or reclaimed by the reaper), waiting for a worker
    PROCESSING = "processing"    # claimed and locked by exactly one worker
    COMPLETED = "completed"      # external operation succeeded, result stored
    FAILED = "failed"            # attempt failed, eligible again once next_retry_at passes
    DEAD_LETTER = "dead_letter"  # retries exhausted, kept for inspection, never reclaimed


# A worker may claim jobs in these states (subject to next_retry_at).
CLAIMABLE_STATUSES = (JobStatus.PENDING.value, JobStatus.FAILED.value)

# Jobs that will still run again. At most one per idempotency key.
IN_FLIGHT_STATUSES = (
    JobStatus.PENDING.value,
    JobStatus.PROCESSING.value,
    JobStatus.FAILED.value,
)

class DedupPolicy(str, enum.Enum):
    NEW_ROW = "new_row"        # terminal jobs stay as-is, a resubmission inserts a fresh row
    RESET_ROW = "reset_row"    # a resubmission revives the latest dead-lettered row


class OperationKind(str, enum.Enum):
    HTTP = "http"              # POST to EXTERNAL_API_URL via httpx
    SIMULATED = "simulated"    # local sleep with configurable failure probability
    FAIL = "fail"              # forced failure, exercises retry/dead-letter paths
