"""
FastAPI dependency injection.

How this works:
- An endpoint declares `db: AsyncSession = Depends(get_db)`
- FastAPI calls get_db() before your endpoint runs, creating a DB session
- Your endpoint receives the session and uses it
- After the endpoint returns (or raises), the session is automatically closed

The process trigger is the one sync endpoint: it runs the worker-side
lifecycle code (claim, execute, resolve) in FastAPI's threadpool, so it gets
the sync session factory instead of an async session. Tests override every
one of these to point at SQLite and fakeredis.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis

from lifecycle.claim import WorkerIdentity
from models.base import AsyncSessionLocal, SyncSessionLocal
from operations.base import AbstractOperation


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yields an async database session, auto-closes when the request ends."""
    async with AsyncSessionLocal() as session:
        yield session


def get_sync_session_factory():
    """Session factory for the worker-side lifecycle code."""
    return SyncSessionLocal


async def get_redis(request: Request) -> Redis:
    """Returns the Redis client stored on the app during startup."""
    return request.app.state.redis


def get_operation(request: Request) -> AbstractOperation:
    """The configured external operation, built once per app."""
    return request.app.state.operation


def get_worker_identity(request: Request) -> WorkerIdentity:
    return request.app.state.worker_identity
