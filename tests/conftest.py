"""
Shared test fixtures.

These replace real infrastructure with lightweight local alternatives:
- PostgreSQL → one SQLite file per test, opened by BOTH a sync engine
  (pysqlite, for worker-side code) and an async engine (aiosqlite, for the API),
  so a job submitted over HTTP can be claimed by the worker code and vice versa
- Redis → fakeredis (pure Python Redis mock)
- HTTP server → httpx.AsyncClient with ASGI transport (no network)
- External API → StubOperation (no network)

This means tests:
- Run without Docker
- Are fully isolated (each test gets a fresh database file)
"""

import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker

from api.dependencies import get_db, get_operation, get_redis, get_sync_session_factory
from api.main import create_app
from lifecycle.clock import utcnow
from lifecycle.store import JobStore
from models.base import Base
from models.enums import JobStatus
from models.job import Job
from operations.base import AbstractOperation


class StubOperation(AbstractOperation):
    """Succeeds instantly and remembers every call."""

    def __init__(self):
        self.calls = []

    def run(self, payload, job_id, timestamp):
        self.calls.append((payload, job_id, timestamp))
        return {"answer": f"result for {payload}"}

    @property
    def name(self) -> str:
        return "stub"


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "jobs.db"


@pytest.fixture
def sync_engine(db_path):
    engine = create_engine(
        f"sqlite:///{db_path}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sync_engine):
    return sessionmaker(sync_engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def stub_operation():
    return StubOperation()


@pytest.fixture
def make_job(session_factory):
    """
    Insert a job row directly, bypassing submission.

    Returns the job id. Any column can be overridden, e.g.
    make_job(status="processing", locked_at=..., locked_by="w1").
    lock_expires_at follows from locked_at + timeout_seconds unless given.
    """
    def _make_job(**overrides) -> uuid.UUID:
        values = dict(
            id=uuid.uuid4(),
            idempotency_key=uuid.uuid4().hex,
            payload="X",
            status=JobStatus.PENDING.value,
            retry_count=0,
            max_retries=3,
            timeout_seconds=600,
        )
        values.update(overrides)
        if values.get("locked_at") is not None and "lock_expires_at" not in values:
            values["lock_expires_at"] = values["locked_at"] + timedelta(
                seconds=values["timeout_seconds"]
            )
        with session_factory() as session:
            session.add(Job(**values))
            session.commit()
        return values["id"]

    return _make_job


@pytest.fixture
def now() -> datetime:
    # a little in the future so rows created during the test are "older"
    return utcnow() + timedelta(seconds=1)


@pytest_asyncio.fixture
async def async_engine(db_path, sync_engine):
    """Async engine over the same file; tables already created by sync_engine."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def async_session_factory(async_engine):
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(async_session_factory):
    """Create a database session bound to the test engine."""
    async with async_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def fake_redis():
    """Create a fake Redis instance (in-memory, no real Redis needed)."""
    r = FakeRedis()
    yield r
    await r.flushall()


@pytest_asyncio.fixture
async def client(async_session_factory, session_factory, fake_redis, stub_operation):
    """
    Create a test HTTP client that talks directly to the FastAPI app.

    dependency_overrides swaps the real database, Redis and external API for
    the test versions. Each request gets its own async session, as in
    production, so reads never see stale identity-map state.
    """
    app = create_app()

    async def override_get_db():
        async with async_session_factory() as session:
            yield session

    async def override_get_redis():
        return fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_sync_session_factory] = lambda: session_factory
    app.dependency_overrides[get_operation] = lambda: stub_operation

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
