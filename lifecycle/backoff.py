"""
Exponential backoff for failed and timed-out jobs.

    delay = base_delay × 2^attempts_before_this_failure

With the default 10s base and max_retries=3 the schedule is:

    1st failure (retry_count 0 → 1)  →  retry in 10s
    2nd failure (retry_count 1 → 2)  →  retry in 20s
    3rd failure (retry_count 2 → 3)  →  dead-letter, no retry

No jitter. An optional cap bounds very long schedules without changing the
doubling sequence below the cap.
"""

from datetime import datetime, timedelta
from typing import Optional

from config.settings import settings


def backoff_delay(
    retry_count: int,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
) -> timedelta:
    """
    Delay before the next attempt, given how many attempts had already failed
    BEFORE the failure being handled now.
    """
    if retry_count < 0:
        raise ValueError(f"retry_count must be >= 0, got {retry_count}")
    if base_delay is None:
        base_delay = settings.RETRY_BASE_DELAY_SECONDS
    if max_delay is None:
        max_delay = settings.RETRY_MAX_DELAY_SECONDS

    seconds = base_delay * (2 ** retry_count)
    if max_delay is not None:
        seconds = min(seconds, max_delay)
    return timedelta(seconds=seconds)


def next_retry_time(retry_count: int, now: datetime, **kwargs) -> datetime:
    return now + backoff_delay(retry_count, **kwargs)
