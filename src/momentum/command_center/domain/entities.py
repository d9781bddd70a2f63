"""
Command Center Domain Entities
==============================

Pure Python domain entities for the prioritized action feed.

A CommandCenterItem is one thing a rep should do, ranked into one of five
tiers. An AttentionFlag is a company-level signal that a human (or the AI)
needs to look at something.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from momentum.config import (
    ACTIVE_ITEM_STATUSES,
    FlagOwner,
    FlagSeverity,
    FlagSourceType,
    FlagStatus,
    ItemSource,
    ItemStatus,
    VALID_FLAG_OWNERS,
    VALID_FLAG_SEVERITIES,
    VALID_FLAG_SOURCE_TYPES,
    VALID_ITEM_STATUSES,
)
from momentum.core.exceptions import DomainException, ValidationException
from momentum.shared.timeutils import parse_datetime, utc_now


@dataclass
class WorkflowStep:
    """One checklist step of a workflow card."""

    id: str
    title: str
    owner: str = "sales_rep"
    urgency: str = "medium"
    completed: bool = False
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "owner": self.owner,
            "urgency": self.urgency,
            "completed": self.completed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowStep":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            owner=data.get("owner") or "sales_rep",
            urgency=data.get("urgency") or "medium",
            completed=bool(data.get("completed", False)),
            completed_at=parse_datetime(data.get("completed_at")),
        )


@dataclass
class CommandCenterItem:
    """
    A prioritized action in a rep's command center.

    Status lifecycle:
        pending -> in_progress -> completed
        pending/in_progress -> snoozed -> (expiry) active again
        any non-terminal -> dismissed
        completed/dismissed -> pending only through reopen()
    """

    user_id: str
    title: str
    tier: int = 5
    action_type: str = "task_simple"
    status: str = ItemStatus.PENDING
    source: str = ItemSource.MANUAL
    id: str = field(default_factory=lambda: str(uuid4()))

    # Source linking
    contact_id: Optional[str] = None
    company_id: Optional[str] = None
    deal_id: Optional[str] = None
    conversation_id: Optional[str] = None
    email_id: Optional[str] = None
    meeting_id: Optional[str] = None

    description: Optional[str] = None
    tier_trigger: Optional[str] = None
    why_now: Optional[str] = None
    source_hash: Optional[str] = None
    workflow_steps: List[WorkflowStep] = field(default_factory=list)

    # Scoring
    momentum_score: int = 0
    score_explanation: List[str] = field(default_factory=list)
    estimated_minutes: int = 15
    deal_value: Optional[float] = None
    deal_probability: Optional[float] = None
    sla_minutes: Optional[int] = None
    sla_status: Optional[str] = None
    urgency_score: int = 0
    value_score: int = 0
    promise_date: Optional[datetime] = None
    commitment_text: Optional[str] = None

    # Timing
    received_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    dismissed_reason: Optional[str] = None
    snoozed_until: Optional[datetime] = None
    snooze_count: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if self.status not in VALID_ITEM_STATUSES:
            raise ValidationException(f"Invalid item status: {self.status}")
        if not 1 <= self.tier <= 5:
            raise ValidationException(f"Tier must be between 1 and 5, got {self.tier}")

    @property
    def is_terminal(self) -> bool:
        return self.status in (ItemStatus.COMPLETED, ItemStatus.DISMISSED)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Pending, in progress, or snoozed with an expired snooze."""
        if self.status in ACTIVE_ITEM_STATUSES:
            return True
        if self.status == ItemStatus.SNOOZED:
            return self.snoozed_until is None or self.snoozed_until <= (now or utc_now())
        return False

    def start(self, at: Optional[datetime] = None) -> None:
        self._ensure_open("start")
        at = at or utc_now()
        self.status = ItemStatus.IN_PROGRESS
        self.started_at = self.started_at or at
        self.snoozed_until = None
        self.updated_at = at

    def complete(self, at: Optional[datetime] = None) -> None:
        self._ensure_open("complete")
        at = at or utc_now()
        self.status = ItemStatus.COMPLETED
        self.completed_at = at
        self.snoozed_until = None
        self.updated_at = at

    def snooze(self, until: datetime, at: Optional[datetime] = None) -> None:
        self._ensure_open("snooze")
        at = at or utc_now()
        if until <= at:
            raise ValidationException("snoozed_until must be in the future")
        self.status = ItemStatus.SNOOZED
        self.snoozed_until = until
        self.snooze_count += 1
        self.updated_at = at

    def dismiss(self, reason: Optional[str] = None, at: Optional[datetime] = None) -> None:
        self._ensure_open("dismiss")
        at = at or utc_now()
        self.status = ItemStatus.DISMISSED
        self.dismissed_at = at
        self.dismissed_reason = reason
        self.snoozed_until = None
        self.updated_at = at

    def reopen(self, at: Optional[datetime] = None) -> None:
        at = at or utc_now()
        self.status = ItemStatus.PENDING
        self.completed_at = None
        self.dismissed_at = None
        self.dismissed_reason = None
        self.snoozed_until = None
        self.updated_at = at

    def transition(self, to_status: str, at: Optional[datetime] = None,
                   snoozed_until: Optional[datetime] = None,
                   dismissed_reason: Optional[str] = None) -> None:
        """Apply a status change requested by the API."""
        if to_status == ItemStatus.IN_PROGRESS:
            self.start(at)
        elif to_status == ItemStatus.COMPLETED:
            self.complete(at)
        elif to_status == ItemStatus.SNOOZED:
            if snoozed_until is None:
                raise ValidationException("snoozed_until is required to snooze an item")
            self.snooze(snoozed_until, at)
        elif to_status == ItemStatus.DISMISSED:
            self.dismiss(dismissed_reason, at)
        elif to_status == ItemStatus.PENDING:
            self.reopen(at)
        else:
            raise ValidationException(f"Invalid item status: {to_status}")

    def _ensure_open(self, action: str) -> None:
        if self.is_terminal:
            raise DomainException(
                f"Cannot {action} a {self.status} item",
                {"item_id": self.id, "status": self.status}
            )


# ========== Attention Flags ==========

class AttentionFlagType(str):
    NEEDS_REPLY = "NEEDS_REPLY"
    BOOK_MEETING_APPROVAL = "BOOK_MEETING_APPROVAL"
    PROPOSAL_APPROVAL = "PROPOSAL_APPROVAL"
    PRICING_EXCEPTION = "PRICING_EXCEPTION"
    CLOSE_DECISION = "CLOSE_DECISION"
    HIGH_RISK_OBJECTION = "HIGH_RISK_OBJECTION"
    NO_NEXT_STEP_AFTER_MEETING = "NO_NEXT_STEP_AFTER_MEETING"
    STALE_IN_STAGE = "STALE_IN_STAGE"
    GHOSTING_AFTER_PROPOSAL = "GHOSTING_AFTER_PROPOSAL"
    DATA_MISSING_BLOCKER = "DATA_MISSING_BLOCKER"
    SYSTEM_ERROR = "SYSTEM_ERROR"


FLAG_TYPE_DEFAULT_SEVERITY: Dict[str, str] = {
    AttentionFlagType.NEEDS_REPLY: FlagSeverity.HIGH,
    AttentionFlagType.BOOK_MEETING_APPROVAL: FlagSeverity.MEDIUM,
    AttentionFlagType.PROPOSAL_APPROVAL: FlagSeverity.HIGH,
    AttentionFlagType.PRICING_EXCEPTION: FlagSeverity.HIGH,
    AttentionFlagType.CLOSE_DECISION: FlagSeverity.CRITICAL,
    AttentionFlagType.HIGH_RISK_OBJECTION: FlagSeverity.HIGH,
    AttentionFlagType.NO_NEXT_STEP_AFTER_MEETING: FlagSeverity.MEDIUM,
    AttentionFlagType.STALE_IN_STAGE: FlagSeverity.MEDIUM,
    AttentionFlagType.GHOSTING_AFTER_PROPOSAL: FlagSeverity.HIGH,
    AttentionFlagType.DATA_MISSING_BLOCKER: FlagSeverity.MEDIUM,
    AttentionFlagType.SYSTEM_ERROR: FlagSeverity.HIGH,
}

# Sort order for the flag queue (critical first)
SEVERITY_ORDER = {
    FlagSeverity.CRITICAL: 1,
    FlagSeverity.HIGH: 2,
    FlagSeverity.MEDIUM: 3,
    FlagSeverity.LOW: 4,
}


@dataclass
class AttentionFlag:
    """A company-level item needing attention."""

    company_id: str
    flag_type: str
    reason: str
    source_type: str = FlagSourceType.SYSTEM
    severity: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    company_product_id: Optional[str] = None
    source_id: Optional[str] = None
    recommended_action: Optional[str] = None
    owner: str = FlagOwner.HUMAN
    status: str = FlagStatus.OPEN
    snoozed_until: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    resolved_at: Optional[datetime] = None

    def __post_init__(self):
        if self.flag_type not in FLAG_TYPE_DEFAULT_SEVERITY:
            raise ValidationException(f"Invalid flag type: {self.flag_type}")
        if self.severity is None:
            self.severity = FLAG_TYPE_DEFAULT_SEVERITY[self.flag_type]
        if self.severity not in VALID_FLAG_SEVERITIES:
            raise ValidationException(f"Invalid flag severity: {self.severity}")
        if self.owner not in VALID_FLAG_OWNERS:
            raise ValidationException(f"Invalid flag owner: {self.owner}")
        if self.source_type not in VALID_FLAG_SOURCE_TYPES:
            raise ValidationException(f"Invalid flag source type: {self.source_type}")
        if self.status == FlagStatus.SNOOZED and self.snoozed_until is None:
            raise ValidationException("A snoozed flag needs snoozed_until")

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Open, or snoozed with an expired snooze."""
        if self.status == FlagStatus.OPEN:
            return True
        if self.status == FlagStatus.SNOOZED:
            return self.snoozed_until <= (now or utc_now())
        return False

    def snooze(self, until: datetime, at: Optional[datetime] = None) -> None:
        at = at or utc_now()
        if self.status == FlagStatus.RESOLVED:
            raise DomainException("Cannot snooze a resolved flag", {"flag_id": self.id})
        if until <= at:
            raise ValidationException("snoozed_until must be in the future")
        self.status = FlagStatus.SNOOZED
        self.snoozed_until = until
        self.updated_at = at

    def resolve(self, at: Optional[datetime] = None) -> None:
        at = at or utc_now()
        if self.status == FlagStatus.RESOLVED:
            return
        self.status = FlagStatus.RESOLVED
        self.snoozed_until = None
        self.resolved_at = at
        self.updated_at = at

    def reopen(self, at: Optional[datetime] = None) -> None:
        at = at or utc_now()
        self.status = FlagStatus.OPEN
        self.snoozed_until = None
        self.resolved_at = None
        self.updated_at = at
