"""
Support Case DTOs
=================

Request models for support case commands.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

SeverityStr = Literal["low", "medium", "high", "urgent", "critical"]
SourceStr = Literal["email", "phone", "chat", "portal", "internal"]
CaseStatusStr = Literal[
    "open", "in_progress", "waiting_on_customer", "waiting_on_internal",
    "escalated", "resolved", "closed"
]
SlaTypeStr = Literal["first_response", "resolution", "update"]


class OpenSupportCaseRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500, description="Case title")
    description: Optional[str] = Field(default=None, description="Customer's description")
    severity: SeverityStr = Field(default="medium", description="Initial severity")
    source: SourceStr = Field(default="email", description="Channel the case arrived through")
    category: Optional[str] = None
    subcategory: Optional[str] = None
    external_id: Optional[str] = Field(default=None, description="Ticket id in an external helpdesk")
    company_id: Optional[str] = None
    company_product_id: Optional[str] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class ChangeSeverityRequest(BaseModel):
    to_severity: SeverityStr
    reason: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=0)


class AssignRequest(BaseModel):
    owner_id: str
    owner_name: Optional[str] = None
    team: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=0)


class ChangeStatusRequest(BaseModel):
    to_status: CaseStatusStr
    expected_version: Optional[int] = Field(default=None, ge=0)


class CustomerMessageRequest(BaseModel):
    received_at: Optional[datetime] = None
    summary: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=0)


class AgentResponseRequest(BaseModel):
    responder_id: Optional[str] = None
    summary: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=0)


class ConfigureSlaRequest(BaseModel):
    sla_type: SlaTypeStr
    target_hours: float = Field(..., gt=0, le=24 * 90)
    expected_version: Optional[int] = Field(default=None, ge=0)


class ResolveRequest(BaseModel):
    resolution_summary: str = Field(default="", description="What fixed the problem")
    root_cause: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=0)


class CloseRequest(BaseModel):
    close_reason: str = Field(default="resolved", description="resolved, no_response, cancelled, duplicate...")
    expected_version: Optional[int] = Field(default=None, ge=0)


class ReopenRequest(BaseModel):
    reason: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=0)


class EscalateRequest(BaseModel):
    reason: Optional[str] = None
    to_team: Optional[str] = None
    to_user_id: Optional[str] = None
    to_user_name: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=0)


class CsatRequest(BaseModel):
    score: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=0)


class TagRequest(BaseModel):
    tag: str = Field(..., min_length=1, max_length=100)
    expected_version: Optional[int] = Field(default=None, ge=0)
