"""
Event Store Models
==================

SQLAlchemy table for the append-only event log.

The unique constraint on (aggregate_id, sequence_number) is the storage-level
guard for optimistic concurrency: two writers racing for the same next
sequence number cannot both commit.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from momentum.infrastructure.database import Base


class EventModel(Base):
    """Maps to the 'event_store' table."""
    __tablename__ = "event_store"

    global_sequence: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True
    )
    id: Mapped[UUID] = mapped_column(Uuid, unique=True, nullable=False, default=uuid4)

    aggregate_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    aggregate_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)

    event_type: Mapped[str] = mapped_column(String(200), nullable=False)
    event_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    event_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    event_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    actor_type: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("aggregate_id", "sequence_number", name="uq_event_store_aggregate_sequence"),
        Index("ix_event_store_aggregate_event_time", "aggregate_id", "event_type", "occurred_at"),
    )
