"""
Event Store Application Services
================================

The event store contract and the thin service the HTTP layer uses to append
and read streams.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence

from momentum.core.exceptions import ValidationException
from momentum.events.domain import NewEvent, StoredEvent
from momentum.shared.infrastructure.logging import get_logger
from momentum.sla.domain import SLAConfig, stamp_sla_settings

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IEventStore(ABC):
    """
    Append-only event log.

    The store exposes no update or delete operation.
    """

    @abstractmethod
    async def append(
        self,
        event: NewEvent,
        expected_version: Optional[int] = None
    ) -> StoredEvent:
        """
        Append one event.

        Raises:
            ConcurrencyException: expected_version differs from the stream
                version, or another writer took the same sequence number
        """

    @abstractmethod
    async def append_many(
        self,
        events: Sequence[NewEvent],
        expected_version: Optional[int] = None
    ) -> List[StoredEvent]:
        """Append several events to one aggregate atomically."""

    @abstractmethod
    async def load_stream(
        self,
        aggregate_id: str,
        after_sequence: int = 0
    ) -> List[StoredEvent]:
        """Events of one aggregate ordered by sequence_number."""

    @abstractmethod
    async def current_version(self, aggregate_id: str) -> int:
        """Highest sequence_number of the aggregate (0 when empty)."""

    @abstractmethod
    async def fetch_after(
        self,
        global_sequence: int,
        limit: int = 100,
        aggregate_types: Optional[Sequence[str]] = None
    ) -> List[StoredEvent]:
        """Events with global_sequence greater than the given one, in global order."""

    @abstractmethod
    async def has_event_since(
        self,
        aggregate_id: str,
        event_type: str,
        since: datetime
    ) -> bool:
        """True when the aggregate has an event of this type at or after `since`."""


def check_single_aggregate(events: Sequence[NewEvent]) -> None:
    """All events of an atomic append must target the same aggregate."""
    ids = {e.aggregate_id for e in events}
    if len(ids) > 1:
        raise ValidationException(
            "append_many requires a single aggregate",
            {"aggregate_ids": sorted(ids)}
        )


# ========== Services ==========

class EventService:
    """
    Append and read operations exposed over HTTP.

    With a config, stage entry and severity change events get the SLA
    settings in force stamped into their payload before they are appended.
    """

    def __init__(self, store: IEventStore, config: Optional[SLAConfig] = None):
        self._store = store
        self._config = config

    async def append(
        self,
        event: NewEvent,
        expected_version: Optional[int] = None
    ) -> StoredEvent:
        if self._config is not None:
            event = stamp_sla_settings(event, self._config)
        stored = await self._store.append(event, expected_version=expected_version)
        logger.info(
            "Event appended",
            extra={
                "aggregate_type": stored.aggregate_type,
                "aggregate_id": stored.aggregate_id,
                "event_type": stored.event_type,
                "sequence_number": stored.sequence_number,
                "global_sequence": stored.global_sequence,
            }
        )
        return stored

    async def get_stream(self, aggregate_id: str, after_sequence: int = 0) -> List[StoredEvent]:
        return await self._store.load_stream(aggregate_id, after_sequence=after_sequence)
