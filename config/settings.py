"""
Centralized configuration using pydantic-settings.

How it works:
- Reads environment variables automatically (e.g., POSTGRES_HOST env var → Settings.POSTGRES_HOST)
- Falls back to defaults defined here if env vars are not set
- Can also read from a .env file in the project root

The API process and the worker process import the same `settings`, so both
sides agree on retry ceilings, timeouts and the backoff base.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── PostgreSQL ──────────────────────────────────────────────
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "jobqueue"
    POSTGRES_PASSWORD: str = "jobqueue"
    POSTGRES_DB: str = "jobqueue"

    # Full SQLAlchemy URL overriding the POSTGRES_* parts, e.g.
    # "sqlite:///./jobqueue.db". The async URL is derived from it.
    DATABASE_URL: Optional[str] = None

    # ── Redis (worker wake-up hint only) ────────────────────────
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # ── Job defaults (fixed per job at creation) ────────────────
    DEFAULT_MAX_RETRIES: int = 3
    DEFAULT_TIMEOUT_SECONDS: int = 600   # 10 minutes of lock before reclaim

    # ── Retry backoff ───────────────────────────────────────────
    RETRY_BASE_DELAY_SECONDS: float = 10.0   # 10s, 20s, 40s, ...
    RETRY_MAX_DELAY_SECONDS: Optional[float] = None

    # ── Idempotency ─────────────────────────────────────────────
    DEDUP_POLICY: str = "new_row"   # "new_row" or "reset_row"

    # ── External operation ──────────────────────────────────────
    EXTERNAL_OPERATION: str = "http"    # "http", "simulated" or "fail"
    EXTERNAL_API_URL: str = "https://httpbin.org/delay/5"
    EXTERNAL_API_TIMEOUT: float = 30.0

    # ── Worker ──────────────────────────────────────────────────
    WORKER_POOL_SIZE: int = 4          # one job in flight per thread
    WORKER_POLL_INTERVAL: float = 2.0  # max seconds to idle before polling again
    REAP_ON_CLAIM: bool = True         # run the stale-lock reaper before each claim

    # ── App ─────────────────────────────────────────────────────
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        """Async connection string for FastAPI (uses asyncpg driver)."""
        if self.DATABASE_URL:
            scheme, rest = self.DATABASE_URL.split("://", 1)
            if scheme.startswith("sqlite"):
                return f"sqlite+aiosqlite://{rest}"
            if scheme.startswith("postgresql"):
                return f"postgresql+asyncpg://{rest}"
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def sync_database_url(self) -> str:
        """Sync connection string for worker threads (uses psycopg2 driver)."""
        if self.DATABASE_URL:
            scheme, rest = self.DATABASE_URL.split("://", 1)
            if scheme.startswith("sqlite"):
                return f"sqlite://{rest}"
            if scheme.startswith("postgresql"):
                return f"postgresql+psycopg2://{rest}"
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton — import this everywhere
settings = Settings()
