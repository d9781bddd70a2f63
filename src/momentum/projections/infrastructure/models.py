"""
Projection Models
=================

Checkpoints and a generic JSON read model table shared by all projectors.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from momentum.config import ProjectorStatus
from momentum.infrastructure.database import Base


class ProjectorCheckpointModel(Base):
    """Maps to the 'projector_checkpoints' table."""
    __tablename__ = "projector_checkpoints"

    projector_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    last_processed_global_sequence: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), nullable=False, default=0
    )
    last_processed_event_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    last_processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    events_processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_error_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ProjectorStatus.ACTIVE)


class ReadModelRecord(Base):
    """Maps to the 'read_models' table; one row per (projector, aggregate)."""
    __tablename__ = "read_models"

    projector_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    aggregate_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    aggregate_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    projection_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    projected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
