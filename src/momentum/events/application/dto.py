"""
Event Store DTOs
================

Request and response models for the event endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from momentum.events.domain import StoredEvent

ActorTypeStr = Literal["user", "system", "ai"]


class AppendEventRequest(BaseModel):
    """Payload for appending one event to an aggregate."""

    event_type: str = Field(..., min_length=1, max_length=200, description="Past-tense event name")
    event_data: Dict[str, Any] = Field(default_factory=dict, description="Event payload")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")
    actor_type: ActorTypeStr = Field(default="user", description="Who caused the event")
    actor_id: Optional[str] = Field(default=None, description="Actor identifier")
    occurred_at: Optional[datetime] = Field(default=None, description="Defaults to now")
    expected_version: Optional[int] = Field(
        default=None,
        ge=0,
        description="Current stream version the writer observed (optimistic concurrency)"
    )


class StoredEventResponse(BaseModel):
    """An appended event."""

    id: UUID
    aggregate_type: str
    aggregate_id: str
    sequence_number: int
    global_sequence: int
    event_type: str
    event_version: int
    event_data: Dict[str, Any]
    metadata: Dict[str, Any]
    actor_type: str
    actor_id: Optional[str]
    occurred_at: datetime
    recorded_at: datetime

    @classmethod
    def from_event(cls, event: StoredEvent) -> "StoredEventResponse":
        return cls(
            id=event.id,
            aggregate_type=event.aggregate_type,
            aggregate_id=event.aggregate_id,
            sequence_number=event.sequence_number,
            global_sequence=event.global_sequence,
            event_type=event.event_type,
            event_version=event.event_version,
            event_data=event.event_data,
            metadata=event.metadata,
            actor_type=event.actor_type,
            actor_id=event.actor_id,
            occurred_at=event.occurred_at,
            recorded_at=event.recorded_at,
        )


class EventStreamResponse(BaseModel):
    aggregate_id: str
    version: int
    events: List[StoredEventResponse]
