"""
Command Center Infrastructure Models
====================================

SQLAlchemy ORM models for command center items, attention flags, and the
CRM source tables items are generated from.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from momentum.config import FlagOwner, FlagStatus, ItemStatus
from momentum.infrastructure.database import Base


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ========== CRM source tables ==========

class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    auth_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)


class CompanyModel(Base):
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class ContactModel(Base):
    __tablename__ = "contacts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    company_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True
    )


class DealModel(Base):
    __tablename__ = "deals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True
    )
    stage: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    estimated_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    probability: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    expected_close_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class EmailMessageModel(Base):
    __tablename__ = "email_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    subject: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    from_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    from_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    conversation_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ai_analysis: Mapped[Optional[dict]] = mapped_column(JSON(none_as_null=True), nullable=True)
    analysis_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)


class MeetingTranscriptionModel(Base):
    __tablename__ = "meeting_transcriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    analysis: Mapped[Optional[dict]] = mapped_column(JSON(none_as_null=True), nullable=True)
    meeting_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)


# ========== Command center ==========

class CommandCenterItemModel(Base):
    """
    Maps to the 'command_center_items' table.

    The unique index on source_hash backs the dedup gate: a concurrent run
    inserting the same source fails with an IntegrityError.
    """
    __tablename__ = "command_center_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    contact_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    company_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    deal_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    conversation_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    meeting_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tier: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    tier_trigger: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    why_now: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ItemStatus.PENDING, index=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    source_hash: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, unique=True)
    workflow_steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    momentum_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score_explanation: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    estimated_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    deal_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    deal_probability: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sla_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    urgency_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    value_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    promise_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    commitment_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    dismissed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    dismissed_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    snoozed_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    snooze_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class AttentionFlagModel(Base):
    """Maps to the 'attention_flags' table."""
    __tablename__ = "attention_flags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    company_product_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    source_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    flag_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    recommended_action: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    owner: Mapped[str] = mapped_column(String(10), nullable=False, default=FlagOwner.HUMAN)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=FlagStatus.OPEN, index=True)
    snoozed_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
