"""
Health check endpoint.

Checks that the database (the only source of truth) and Redis (the worker
wake-up channel) are reachable. A Redis outage degrades latency, not
correctness, so it is reported but does not fail the check.
"""

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, get_redis

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
) -> dict:
    """Check that the database and Redis are reachable."""
    # Test the database: run a trivial query
    await db.execute(text("SELECT 1"))

    # Test Redis: ping-pong
    try:
        await redis.ping()
        redis_state = "ok"
    except RedisError:
        redis_state = "unavailable"

    return {"status": "healthy", "database": "ok", "redis": redis_state}
