"""
Job ORM model — maps to the "jobs" table.

Key design decisions:
- UUID primary key: the opaque handle returned to submitters
- JSON (JSONB on PostgreSQL) for payload/result: the external operation decides their shape
- locked_at/locked_by/lock_expires_at: the claim record; set while processing,
  NULL otherwise
- next_retry_at: when a failed job becomes claimable again (exponential backoff)
- timeout_seconds: per-job lock timeout; lock_expires_at is stamped from it at
  claim time so the stale-lock reaper can find expired locks with an index
- idempotency_key: unique among in-flight jobs only, enforced by a partial
  unique index so concurrent duplicate submissions cannot both insert

The claim query filters on status, next_retry_at and locked_at, the reaper
on status and lock_expires_at, so those carry indexes.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle.clock import utcnow
from models.base import Base
from models.enums import IN_FLIGHT_STATUSES, JobStatus

# JSONB on PostgreSQL, plain JSON (TEXT) on SQLite for tests and local runs
JSONType = JSON().with_variant(JSONB(), "postgresql")

_IN_FLIGHT_PREDICATE = "status IN ({})".format(
    ", ".join(f"'{status}'" for status in IN_FLIGHT_STATUSES)
)


class Job(Base):
    __tablename__ = "jobs"

    # ── Identity ────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    idempotency_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    submitter_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Payload & Results ───────────────────────────────────────
    payload: Mapped[Any] = mapped_column(JSONType, nullable=False)
    result: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Lifecycle state ─────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.PENDING.value, nullable=False, index=True
    )

    # ── Retry tracking ──────────────────────────────────────────
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    next_retry_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    # ── Claim / lock ────────────────────────────────────────────
    timeout_seconds: Mapped[int] = mapped_column(Integer, default=600, nullable=False)
    locked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    locked_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    # locked_at + timeout_seconds, fixed when the claim is made
    lock_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    # ── Audit timestamps ────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index(
            "uq_jobs_in_flight_idempotency_key",
            "idempotency_key",
            unique=True,
            postgresql_where=text(_IN_FLIGHT_PREDICATE),
            sqlite_where=text(_IN_FLIGHT_PREDICATE),
        ),
        Index("ix_jobs_claim_scan", "status", "next_retry_at", "locked_at"),
    )

    def __repr__(self) -> str:
        return f"<Job {self.id} {self.status} ({self.retry_count}/{self.max_retries})>"
