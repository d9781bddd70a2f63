"""
Projection Entities
===================

Checkpoint bookkeeping for projectors and the results a run reports.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from momentum.config import ProjectorStatus, VALID_PROJECTOR_STATUSES
from momentum.core.exceptions import ValidationException
from momentum.events.domain import StoredEvent


@dataclass
class ProjectorCheckpoint:
    """
    Progress of one projector through the global event log.

    Invariant: last_processed_global_sequence only ever points at an event
    the projector applied successfully.
    """

    projector_name: str
    last_processed_global_sequence: int = 0
    last_processed_event_id: Optional[UUID] = None
    last_processed_at: Optional[datetime] = None
    events_processed_count: int = 0
    errors_count: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None
    status: str = ProjectorStatus.ACTIVE

    def __post_init__(self):
        if self.status not in VALID_PROJECTOR_STATUSES:
            raise ValidationException(f"Invalid projector status: {self.status}")

    @property
    def is_halted(self) -> bool:
        return self.status in (ProjectorStatus.ERROR, ProjectorStatus.PAUSED)

    def advance(self, event: StoredEvent, at: datetime) -> None:
        self.last_processed_global_sequence = event.global_sequence
        self.last_processed_event_id = event.id
        self.last_processed_at = at
        self.events_processed_count += 1

    def record_error(self, error: str, at: datetime) -> None:
        self.errors_count += 1
        self.last_error = error
        self.last_error_at = at
        self.status = ProjectorStatus.ERROR

    def reset(self) -> None:
        self.last_processed_global_sequence = 0
        self.last_processed_event_id = None
        self.last_processed_at = None
        self.events_processed_count = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projector_name": self.projector_name,
            "last_processed_global_sequence": self.last_processed_global_sequence,
            "last_processed_event_id": str(self.last_processed_event_id) if self.last_processed_event_id else None,
            "last_processed_at": self.last_processed_at.isoformat() if self.last_processed_at else None,
            "events_processed_count": self.events_processed_count,
            "errors_count": self.errors_count,
            "last_error": self.last_error,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
            "status": self.status,
        }


@dataclass(frozen=True)
class ProjectorError:
    """The event a projector failed on."""

    event_id: Optional[UUID]
    global_sequence: Optional[int]
    event_type: Optional[str]
    error: str
    timestamp: datetime


@dataclass
class ProjectorResult:
    projector_name: str
    success: bool
    events_processed: int = 0
    last_processed_sequence: int = 0
    errors: List[ProjectorError] = field(default_factory=list)
    duration_ms: float = 0.0
    halted: bool = False


@dataclass(frozen=True)
class StoredReadModel:
    """A persisted projector state for one aggregate."""

    projector_name: str
    aggregate_type: str
    aggregate_id: str
    data: Dict[str, Any]
    projection_version: int
    projected_at: datetime
