"""
Support Case Read Model
=======================

The SupportCase aggregate root is identity only; everything a support agent
sees is this projection.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from momentum.config import SLAType, SupportCaseStatus


class SlaState(BaseModel):
    """One SLA clock of a support case."""

    sla_type: str
    target_hours: Optional[float] = None
    due_at: Optional[datetime] = None
    warning_at: Optional[datetime] = None
    met_at: Optional[datetime] = None
    breached_at: Optional[datetime] = None
    is_breached: bool = False
    config_source: Optional[str] = None

    @property
    def is_met(self) -> bool:
        return self.met_at is not None

    @property
    def is_running(self) -> bool:
        return self.met_at is None and self.due_at is not None


class SupportCaseReadModel(BaseModel):
    support_case_id: str
    company_id: Optional[str] = None
    company_product_id: Optional[str] = None

    title: str = ""
    description: Optional[str] = None
    external_id: Optional[str] = None
    source: Optional[str] = None
    status: str = SupportCaseStatus.OPEN
    severity: str = "medium"
    category: Optional[str] = None
    subcategory: Optional[str] = None

    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    assigned_team: Optional[str] = None

    opened_at: Optional[datetime] = None
    first_response_at: Optional[datetime] = None
    last_customer_contact_at: Optional[datetime] = None
    last_agent_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    resolution_summary: Optional[str] = None
    root_cause: Optional[str] = None
    resolution_time_hours: Optional[float] = None
    close_reason: Optional[str] = None
    next_action: Optional[str] = None
    next_action_due_at: Optional[datetime] = None

    response_count: int = 0
    customer_response_count: int = 0
    agent_response_count: int = 0
    internal_note_count: int = 0
    escalation_count: int = 0
    escalation_level: int = 0
    reopen_count: int = 0

    csat_score: Optional[int] = None
    csat_comment: Optional[str] = None
    csat_submitted_at: Optional[datetime] = None
    engagement_impact: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    slas: Dict[str, SlaState] = Field(default_factory=dict)

    last_event_at: Optional[datetime] = None
    last_event_type: Optional[str] = None
    last_event_sequence: int = 0
    projection_version: int = 0

    @property
    def first_response_sla(self) -> Optional[SlaState]:
        return self.slas.get(SLAType.FIRST_RESPONSE)

    @property
    def resolution_sla(self) -> Optional[SlaState]:
        return self.slas.get(SLAType.RESOLUTION)

    @property
    def is_closed(self) -> bool:
        return self.status == SupportCaseStatus.CLOSED

    @property
    def is_resolved(self) -> bool:
        return self.status in (SupportCaseStatus.RESOLVED, SupportCaseStatus.CLOSED)
