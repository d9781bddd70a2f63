"""
Projection DTOs
===============

Response models for the projector admin API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from momentum.projections.domain import ProjectorCheckpoint, ProjectorResult


class CheckpointResponse(BaseModel):
    projector_name: str
    status: str
    last_processed_global_sequence: int
    last_processed_event_id: Optional[str] = None
    last_processed_at: Optional[datetime] = None
    events_processed_count: int = 0
    errors_count: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    @classmethod
    def from_checkpoint(cls, checkpoint: ProjectorCheckpoint) -> "CheckpointResponse":
        return cls(
            projector_name=checkpoint.projector_name,
            status=checkpoint.status,
            last_processed_global_sequence=checkpoint.last_processed_global_sequence,
            last_processed_event_id=(
                str(checkpoint.last_processed_event_id) if checkpoint.last_processed_event_id else None
            ),
            last_processed_at=checkpoint.last_processed_at,
            events_processed_count=checkpoint.events_processed_count,
            errors_count=checkpoint.errors_count,
            last_error=checkpoint.last_error,
            last_error_at=checkpoint.last_error_at,
        )


class ProjectorErrorResponse(BaseModel):
    event_id: Optional[str] = None
    global_sequence: Optional[int] = None
    event_type: Optional[str] = None
    error: str
    timestamp: datetime


class ProjectorResultResponse(BaseModel):
    projector_name: str
    success: bool
    halted: bool = False
    events_processed: int = 0
    last_processed_sequence: int = 0
    duration_ms: float = 0.0
    errors: List[ProjectorErrorResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ProjectorResult) -> "ProjectorResultResponse":
        return cls(
            projector_name=result.projector_name,
            success=result.success,
            halted=result.halted,
            events_processed=result.events_processed,
            last_processed_sequence=result.last_processed_sequence,
            duration_ms=result.duration_ms,
            errors=[
                ProjectorErrorResponse(
                    event_id=str(e.event_id) if e.event_id else None,
                    global_sequence=e.global_sequence,
                    event_type=e.event_type,
                    error=e.error,
                    timestamp=e.timestamp,
                )
                for e in result.errors
            ],
        )


class ReadModelResponse(BaseModel):
    projector_name: str
    aggregate_id: str
    state: Dict[str, Any]
