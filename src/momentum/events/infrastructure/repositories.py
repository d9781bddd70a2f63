"""
Event Store Repository
======================

SQLAlchemy implementation of IEventStore.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from momentum.core.exceptions import ConcurrencyException
from momentum.events.application.services import IEventStore, check_single_aggregate
from momentum.events.domain import NewEvent, StoredEvent
from momentum.events.infrastructure.models import EventModel
from momentum.shared.timeutils import ensure_utc, utc_now


def _to_entity(model: EventModel) -> StoredEvent:
    return StoredEvent(
        id=model.id,
        aggregate_type=model.aggregate_type,
        aggregate_id=model.aggregate_id,
        sequence_number=model.sequence_number,
        global_sequence=model.global_sequence,
        event_type=model.event_type,
        event_version=model.event_version,
        event_data=dict(model.event_data or {}),
        metadata=dict(model.event_metadata or {}),
        actor_type=model.actor_type,
        actor_id=model.actor_id,
        occurred_at=ensure_utc(model.occurred_at),
        recorded_at=ensure_utc(model.recorded_at),
    )


class SQLAlchemyEventStore(IEventStore):
    """
    Event store backed by the 'event_store' table.

    The caller owns the transaction (get_session / get_session_context).
    """

    def __init__(self, session: AsyncSession):
        self._session = session

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

        current = await self.current_version(aggregate_id)
        if expected_version is not None and expected_version != current:
            raise ConcurrencyException(aggregate_id, expected_version, current)

        recorded_at = utc_now()
        models = [
            EventModel(
                aggregate_type=event.aggregate_type,
                aggregate_id=event.aggregate_id,
                sequence_number=current + offset,
                event_type=event.event_type,
                event_version=event.event_version,
                event_data=dict(event.event_data),
                event_metadata=dict(event.metadata),
                actor_type=event.actor_type,
                actor_id=event.actor_id,
                occurred_at=event.occurred_at,
                recorded_at=recorded_at,
            )
            for offset, event in enumerate(events, start=1)
        ]

        self._session.add_all(models)
        try:
            await self._session.flush()
        except IntegrityError as e:
            # Another writer committed the same sequence number first
            raise ConcurrencyException(
                aggregate_id,
                expected_version,
                current,
                {"aggregate_id": aggregate_id, "error": str(e.orig)}
            )

        return [_to_entity(model) for model in models]

    async def load_stream(self, aggregate_id: str, after_sequence: int = 0) -> List[StoredEvent]:
        stmt = (
            select(EventModel)
            .where(
                EventModel.aggregate_id == aggregate_id,
                EventModel.sequence_number > after_sequence
            )
            .order_by(EventModel.sequence_number)
        )
        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def current_version(self, aggregate_id: str) -> int:
        stmt = select(func.max(EventModel.sequence_number)).where(
            EventModel.aggregate_id == aggregate_id
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() or 0

    async def fetch_after(
        self,
        global_sequence: int,
        limit: int = 100,
        aggregate_types: Optional[Sequence[str]] = None
    ) -> List[StoredEvent]:
        stmt = select(EventModel).where(EventModel.global_sequence > global_sequence)
        if aggregate_types:
            stmt = stmt.where(EventModel.aggregate_type.in_(list(aggregate_types)))
        stmt = stmt.order_by(EventModel.global_sequence).limit(limit)

        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def has_event_since(self, aggregate_id: str, event_type: str, since: datetime) -> bool:
        stmt = (
            select(EventModel.global_sequence)
            .where(
                EventModel.aggregate_id == aggregate_id,
                EventModel.event_type == event_type,
                EventModel.occurred_at >= since
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None
