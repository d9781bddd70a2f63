"""
Lifecycle Read Models
=====================

Derived state for a CompanyProduct (one product sold to one company) as it
moves through onboarding / sales / engagement processes.

Both models are rebuilt from events only; nothing writes to them directly.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CompanyProductReadModel(BaseModel):
    """Current snapshot of one CompanyProduct."""

    company_product_id: str

    # Process
    current_process_type: Optional[str] = None
    current_process_id: Optional[str] = None
    process_started_at: Optional[datetime] = None
    process_completed_at: Optional[datetime] = None
    total_process_days: int = 0

    # Stage
    current_stage_id: Optional[str] = None
    current_stage_name: Optional[str] = None
    current_stage_slug: Optional[str] = None
    current_stage_order: Optional[int] = None
    stage_entered_at: Optional[datetime] = None
    days_in_current_stage: int = 0
    stage_transition_count: int = 0

    # Stage SLA
    stage_sla_days: Optional[int] = None
    stage_sla_deadline: Optional[datetime] = None
    stage_sla_warning_at: Optional[datetime] = None
    is_sla_warning: bool = False
    is_sla_breached: bool = False

    # Health
    health_score: Optional[float] = None
    risk_level: Optional[str] = None
    risk_factors: List[Dict[str, Any]] = Field(default_factory=list)

    # Commercials and ownership
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    tier: Optional[int] = None
    mrr: Optional[float] = None
    mrr_currency: Optional[str] = None
    seats: Optional[int] = None
    next_step: Optional[str] = None
    next_step_due_date: Optional[str] = None
    is_next_step_overdue: bool = False

    # Projection metadata
    last_event_at: Optional[datetime] = None
    last_event_type: Optional[str] = None
    last_event_sequence: int = 0
    projection_version: int = 0

    @property
    def is_process_active(self) -> bool:
        return self.current_process_id is not None and self.process_completed_at is None


class StageFact(BaseModel):
    """One visit of a CompanyProduct to one stage."""

    stage_id: str
    stage_name: Optional[str] = None
    stage_slug: Optional[str] = None
    stage_order: Optional[int] = None
    process_id: Optional[str] = None
    process_type: Optional[str] = None

    entered_at: datetime
    exited_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    duration_business_days: Optional[int] = None

    sla_days: Optional[int] = None
    sla_met: Optional[bool] = None
    days_over_sla: Optional[int] = None

    exit_reason: Optional[str] = None
    entry_event_id: str
    exit_event_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.exited_at is None


class StageFactHistory(BaseModel):
    """All stage visits of one CompanyProduct; at most one is open."""

    company_product_id: str
    facts: List[StageFact] = Field(default_factory=list)
    projection_version: int = 0

    @property
    def open_fact(self) -> Optional[StageFact]:
        for fact in reversed(self.facts):
            if fact.is_open:
                return fact
        return None

    def has_entry(self, event_id: str) -> bool:
        return any(f.entry_event_id == event_id for f in self.facts)
