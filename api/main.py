"""
FastAPI application factory.

This file:
1. Creates the FastAPI app
2. Runs startup logic (create DB tables, connect to Redis)
3. Registers all routers (jobs, process, health)
4. Runs shutdown logic (close connections)

The `lifespan` context manager is FastAPI's way of handling startup/shutdown.

To run:  uvicorn api.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis as AsyncRedis

from config.settings import settings
from lifecycle.claim import WorkerIdentity
from models.base import async_engine, Base
from operations.registry import create_operation
from api.routers import jobs, process, health

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Runs on startup (before yield) and shutdown (after yield).

    Startup:
    - Creates all DB tables if they don't exist (safe to run multiple times)
    - Connects to Redis

    Shutdown:
    - Closes Redis and the external operation's HTTP client
    - Disposes the DB engine (closes connection pool)
    """
    # ── Startup ─────────────────────────────────────────────────
    logger.info("Creating database tables...")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.redis = AsyncRedis.from_url(settings.redis_url)
    logger.info(
        f"API ready, operation: {app.state.operation.name}, "
        f"dedup policy: {settings.DEDUP_POLICY}"
    )

    yield  # app is running and serving requests between startup and shutdown

    # ── Shutdown ────────────────────────────────────────────────
    await app.state.redis.close()
    close = getattr(app.state.operation, "close", None)
    if close is not None:
        close()
    await async_engine.dispose()
    logger.info("API shut down")


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    app = FastAPI(
        title="Job Queue",
        description="Durable single-queue job processor with atomic claims, retries with exponential backoff, and dead-lettering",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Per-process identity for claims made through POST /process
    app.state.worker_identity = WorkerIdentity("api")
    app.state.operation = create_operation(settings.EXTERNAL_OPERATION)

    # Register routers — each one adds its endpoints to the app
    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(process.router)

    return app


# This is what uvicorn imports: `uvicorn api.main:app`
app = create_app()
