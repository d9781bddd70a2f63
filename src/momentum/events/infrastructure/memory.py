"""In-memory event store used by tests, replay tooling and local runs."""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from momentum.core.exceptions import ConcurrencyException
from momentum.events.application.services import IEventStore, check_single_aggregate
from momentum.events.domain import NewEvent, StoredEvent


class InMemoryEventStore(IEventStore):
    """Keeps streams in dicts; appends are serialized with an asyncio.Lock."""

    def __init__(self) -> None:
        self._streams: Dict[str, List[StoredEvent]] = {}
        self._log: List[StoredEvent] = []
        self._lock = asyncio.Lock()

    async def append(
        self,
        event: NewEvent,
        expected_version: Optional[int] = None
    ) -> StoredEvent:
        stored = await self.append_many([event], expected_version=expected_version)
        return stored[0]

    async def append_many(
        self,
        events: Sequence[NewEvent],
        expected_version: Optional[int] = None
    ) -> List[StoredEvent]:
        if not events:
            return []
        check_single_aggregate(events)
        aggregate_id = events[0].aggregate_id

        async with self._lock:
            stream = self._streams.setdefault(aggregate_id, [])
            current = len(stream)
            if expected_version is not None and expected_version != current:
                raise ConcurrencyException(aggregate_id, expected_version, current)

            stored: List[StoredEvent] = []
            for offset, event in enumerate(events, start=1):
                record = StoredEvent.from_new(
                    event,
                    sequence_number=current + offset,
                    global_sequence=len(self._log) + 1,
                )
                stream.append(record)
                self._log.append(record)
                stored.append(record)
            return stored

    async def load_stream(self, aggregate_id: str, after_sequence: int = 0) -> List[StoredEvent]:
        return [e for e in self._streams.get(aggregate_id, []) if e.sequence_number > after_sequence]

    async def current_version(self, aggregate_id: str) -> int:
        return len(self._streams.get(aggregate_id, []))

    async def fetch_after(
        self,
        global_sequence: int,
        limit: int = 100,
        aggregate_types: Optional[Sequence[str]] = None
    ) -> List[StoredEvent]:
        selected = [
            e for e in self._log[global_sequence:]
            if aggregate_types is None or e.aggregate_type in aggregate_types
        ]
        return selected[:limit]

    async def has_event_since(self, aggregate_id: str, event_type: str, since: datetime) -> bool:
        return any(
            e.event_type == event_type and e.occurred_at >= since
            for e in self._streams.get(aggregate_id, [])
        )

    def all_events(self) -> List[StoredEvent]:
        """Snapshot of the whole log in global order."""
        return list(self._log)
