"""
Event Store Controllers (API Routes)
====================================

Append to and read aggregate streams.

Version conflicts surface as 409 through the application exception handler.
Stage entry and severity change events are stamped with the SLA settings in
force before they are appended.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from momentum.events.application import EventService
from momentum.events.application.dto import (
    AppendEventRequest,
    EventStreamResponse,
    StoredEventResponse,
)
from momentum.events.domain import NewEvent
from momentum.events.infrastructure.repositories import SQLAlchemyEventStore
from momentum.infrastructure.database import get_session
from momentum.shared.timeutils import utc_now
from momentum.sla.infrastructure import get_sla_config

router = APIRouter(prefix="/events", tags=["Event Store"])


APPEND_EXAMPLE = {
    "event_type": "CompanyProductStageSet",
    "event_data": {
        "fromStageId": "stage-discovery",
        "toStageId": "stage-proposal",
        "toStageName": "Proposal",
        "toStageOrder": 2
    },
    "actor_type": "user",
    "actor_id": "user-42",
    "expected_version": 3
}


async def get_event_service(session: AsyncSession = Depends(get_session)) -> EventService:
    return EventService(SQLAlchemyEventStore(session), get_sla_config())


@router.post(
    "/{aggregate_type}/{aggregate_id}",
    response_model=StoredEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append an event",
    description="""
    Append one immutable event to an aggregate stream.

    The store assigns `sequence_number` (per aggregate, starting at 1) and
    `global_sequence`. Pass `expected_version` to guard against concurrent
    writers; a mismatch returns **409 Conflict**.
    """,
    responses={201: {"content": {"application/json": {"example": APPEND_EXAMPLE}}}}
)
async def append_event(
    aggregate_type: str,
    aggregate_id: str,
    request: AppendEventRequest,
    service: EventService = Depends(get_event_service)
):
    event = NewEvent(
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        event_type=request.event_type,
        event_data=request.event_data,
        metadata=request.metadata,
        actor_type=request.actor_type,
        actor_id=request.actor_id,
        occurred_at=request.occurred_at or utc_now(),
    )
    stored = await service.append(event, expected_version=request.expected_version)
    return StoredEventResponse.from_event(stored)


@router.get(
    "/{aggregate_id}",
    response_model=EventStreamResponse,
    summary="Read an aggregate stream"
)
async def get_stream(
    aggregate_id: str,
    after_sequence: int = Query(default=0, ge=0),
    service: EventService = Depends(get_event_service)
):
    events = await service.get_stream(aggregate_id, after_sequence=after_sequence)
    return EventStreamResponse(
        aggregate_id=aggregate_id,
        version=events[-1].sequence_number if events else after_sequence,
        events=[StoredEventResponse.from_event(e) for e in events],
    )
