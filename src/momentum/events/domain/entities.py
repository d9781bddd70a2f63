"""
Event Store Entities
====================

Immutable facts recorded against an aggregate.

A NewEvent is what a command handler proposes; the store turns it into a
StoredEvent by assigning the per-aggregate sequence number, the global
sequence and the recording time. Neither is ever mutated afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from momentum.config import ActorType, VALID_ACTOR_TYPES
from momentum.core.exceptions import ValidationException
from momentum.shared.timeutils import ensure_utc, utc_now


@dataclass(frozen=True)
class NewEvent:
    """An event that has not been appended yet."""

    aggregate_type: str
    aggregate_id: str
    event_type: str
    event_data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    actor_type: str = ActorType.SYSTEM
    actor_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=utc_now)
    event_version: int = 1

    def __post_init__(self):
        if not self.aggregate_type:
            raise ValidationException("aggregate_type is required")
        if not self.aggregate_id:
            raise ValidationException("aggregate_id is required")
        if not self.event_type:
            raise ValidationException("event_type is required")
        if self.actor_type not in VALID_ACTOR_TYPES:
            raise ValidationException(
                f"Invalid actor_type: {self.actor_type}",
                {"allowed": VALID_ACTOR_TYPES}
            )
        if self.event_version < 1:
            raise ValidationException("event_version must be >= 1")
        object.__setattr__(self, "occurred_at", ensure_utc(self.occurred_at))


@dataclass(frozen=True)
class StoredEvent:
    """
    An appended event.

    sequence_number is strictly increasing per aggregate starting at 1;
    global_sequence orders every event in the store.
    """

    id: UUID
    aggregate_type: str
    aggregate_id: str
    sequence_number: int
    global_sequence: int
    event_type: str
    event_data: Dict[str, Any]
    occurred_at: datetime
    recorded_at: datetime
    event_version: int = 1
    actor_type: str = ActorType.SYSTEM
    actor_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_new(
        cls,
        event: NewEvent,
        sequence_number: int,
        global_sequence: int,
        recorded_at: Optional[datetime] = None,
        event_id: Optional[UUID] = None,
    ) -> "StoredEvent":
        return cls(
            id=event_id or uuid4(),
            aggregate_type=event.aggregate_type,
            aggregate_id=event.aggregate_id,
            sequence_number=sequence_number,
            global_sequence=global_sequence,
            event_type=event.event_type,
            event_data=dict(event.event_data),
            occurred_at=event.occurred_at,
            recorded_at=recorded_at or utc_now(),
            event_version=event.event_version,
            actor_type=event.actor_type,
            actor_id=event.actor_id,
            metadata=dict(event.metadata),
        )
