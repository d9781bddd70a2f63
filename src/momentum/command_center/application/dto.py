"""
Command Center DTOs
===================

Request and response models for the command center and attention flag API.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from momentum.command_center.domain import (
    AttentionFlag,
    CommandCenterItem,
    EngagementSignals,
    MomentumScore,
    RiskSignals,
    ScoringContext,
)

# ========== Type Aliases for Literals ==========
ItemStatusStr = Literal["pending", "in_progress", "completed", "snoozed", "dismissed"]
FlagSeverityStr = Literal["low", "medium", "high", "critical"]
FlagOwnerStr = Literal["human", "ai"]
FlagSourceTypeStr = Literal["communication", "pipeline", "system"]


# ========== Request DTOs ==========

class UpdateItemStatusRequest(BaseModel):
    status: ItemStatusStr
    snoozed_until: Optional[datetime] = Field(default=None, description="Required when snoozing")
    dismissed_reason: Optional[str] = None


class EngagementSignalsRequest(BaseModel):
    proposal_viewed_at: Optional[datetime] = None
    email_open_count: int = Field(default=0, ge=0)
    link_clicked_at: Optional[datetime] = None
    forwarded_internally_at: Optional[datetime] = None
    replied_quickly: bool = False
    meeting_accepted_at: Optional[datetime] = None


class RiskSignalsRequest(BaseModel):
    stale_days: int = Field(default=0, ge=0)
    stuck_stage_days: int = Field(default=0, ge=0)
    competitor_mentioned: bool = False
    champion_going_dark: bool = False
    health_score_drop: float = Field(default=0, ge=0)
    ghosting_risk: bool = False
    multi_thread_missing: bool = False


class ScoreItemRequest(BaseModel):
    """Signals to score an item with; everything is optional."""
    signal_type: Optional[str] = None
    engagement: Optional[EngagementSignalsRequest] = None
    risk: Optional[RiskSignalsRequest] = None
    avg_deal_size: Optional[float] = Field(default=None, gt=0)

    def to_context(self) -> ScoringContext:
        return ScoringContext(
            signal_type=self.signal_type,
            engagement=EngagementSignals(**self.engagement.model_dump()) if self.engagement else None,
            risk=RiskSignals(**self.risk.model_dump()) if self.risk else None,
            avg_deal_size=self.avg_deal_size,
        )


class CreateAttentionFlagRequest(BaseModel):
    company_id: str
    flag_type: str = Field(..., description="One of the AttentionFlagType values")
    reason: str = Field(..., min_length=1)
    severity: Optional[FlagSeverityStr] = Field(default=None, description="Defaults by flag type")
    source_type: FlagSourceTypeStr = "system"
    source_id: Optional[str] = None
    company_product_id: Optional[str] = None
    recommended_action: Optional[str] = None
    owner: FlagOwnerStr = "human"


class SnoozeRequest(BaseModel):
    snoozed_until: datetime


# ========== Response DTOs ==========

class WorkflowStepResponse(BaseModel):
    id: str
    title: str
    owner: str
    urgency: str
    completed: bool
    completed_at: Optional[datetime] = None


class CommandCenterItemResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    tier: int
    tier_trigger: Optional[str] = None
    why_now: Optional[str] = None
    action_type: str
    status: str
    source: str
    source_hash: Optional[str] = None
    contact_id: Optional[str] = None
    company_id: Optional[str] = None
    deal_id: Optional[str] = None
    conversation_id: Optional[str] = None
    email_id: Optional[str] = None
    meeting_id: Optional[str] = None
    workflow_steps: List[WorkflowStepResponse] = Field(default_factory=list)
    momentum_score: int
    score_explanation: List[str] = Field(default_factory=list)
    estimated_minutes: int
    deal_value: Optional[float] = None
    sla_minutes: Optional[int] = None
    sla_status: Optional[str] = None
    promise_date: Optional[datetime] = None
    received_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    dismissed_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, item: CommandCenterItem) -> "CommandCenterItemResponse":
        return cls(
            id=item.id,
            user_id=item.user_id,
            title=item.title,
            description=item.description,
            tier=item.tier,
            tier_trigger=item.tier_trigger,
            why_now=item.why_now,
            action_type=item.action_type,
            status=item.status,
            source=item.source,
            source_hash=item.source_hash,
            contact_id=item.contact_id,
            company_id=item.company_id,
            deal_id=item.deal_id,
            conversation_id=item.conversation_id,
            email_id=item.email_id,
            meeting_id=item.meeting_id,
            workflow_steps=[WorkflowStepResponse(**s.__dict__) for s in item.workflow_steps],
            momentum_score=item.momentum_score,
            score_explanation=item.score_explanation,
            estimated_minutes=item.estimated_minutes,
            deal_value=item.deal_value,
            sla_minutes=item.sla_minutes,
            sla_status=item.sla_status,
            promise_date=item.promise_date,
            received_at=item.received_at,
            due_at=item.due_at,
            snoozed_until=item.snoozed_until,
            completed_at=item.completed_at,
            dismissed_reason=item.dismissed_reason,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class FeedTierResponse(BaseModel):
    tier: int
    name: str
    count: int
    items: List[CommandCenterItemResponse]


class FeedResponse(BaseModel):
    user_id: str
    generated_at: datetime
    total: int
    tiers: List[FeedTierResponse]


class ScoreFactorResponse(BaseModel):
    value: int
    explanation: str
    signals: List[str] = Field(default_factory=list)


class MomentumScoreResponse(BaseModel):
    item_id: str
    score: int
    factors: Dict[str, ScoreFactorResponse]
    explanation: List[str]

    @classmethod
    def from_score(cls, item_id: str, score: MomentumScore) -> "MomentumScoreResponse":
        return cls(item_id=item_id, **score.to_dict())


class AttentionFlagResponse(BaseModel):
    id: str
    company_id: str
    company_product_id: Optional[str] = None
    flag_type: str
    severity: str
    reason: str
    recommended_action: Optional[str] = None
    owner: str
    source_type: str
    source_id: Optional[str] = None
    status: str
    snoozed_until: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, flag: AttentionFlag) -> "AttentionFlagResponse":
        return cls(**flag.__dict__)
