"""
SQLAlchemy engine and session factories.

Two separate engines exist because:
- FastAPI is async → needs asyncpg driver + async sessions (submission, status reads)
- Worker threads are sync → need psycopg2 driver + sync sessions (claim, resolve, reap)

You CANNOT use an async session inside a thread (it would block the event loop),
and you CANNOT use a sync session inside an async handler (it would block the server).
Both engines point at the same database; the jobs table is the only shared state.
"""

from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy import create_engine

from config.settings import settings


class Base(DeclarativeBase):
    """Base class for all ORM models. SQLAlchemy uses this to track table metadata."""
    pass


# ── Async engine (for FastAPI) ──────────────────────────────────
async_engine = create_async_engine(settings.database_url, echo=False)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False)

# ── Sync engine (for worker threads) ────────────────────────────
sync_engine = create_engine(settings.sync_database_url, echo=False, pool_pre_ping=True)
SyncSessionLocal = sessionmaker(sync_engine, expire_on_commit=False)
