"""
New-job wake-up hint over Redis.

Workers poll the database for eligible jobs. To avoid waiting a whole poll
interval after a submission, the API pushes a token onto a Redis list and an
idle worker BLPOPs it:

    API:     RPUSH jobqueue:wakeup <job_id>     (then LTRIM to a small backlog)
    Worker:  BLPOP jobqueue:wakeup <poll interval>

The token carries no authority. A worker that wakes up still has to win the
claim in the database, and a lost token only costs one poll interval.
"""

import logging

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

REDIS_WAKEUP_KEY = "jobqueue:wakeup"
WAKEUP_BACKLOG = 100


async def notify_new_job(redis: AsyncRedis, job_id) -> bool:
    """Push a wake-up token. Returns False if Redis is unavailable."""
    try:
        await redis.rpush(REDIS_WAKEUP_KEY, str(job_id))
        await redis.ltrim(REDIS_WAKEUP_KEY, -WAKEUP_BACKLOG, -1)
    except RedisError as e:
        # the job is already durable; workers will find it on their next poll
        logger.warning(f"Could not publish wake-up for job {job_id}: {e}")
        return False
    return True
