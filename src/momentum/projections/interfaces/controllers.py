"""
Projector Controllers (API Routes)
==================================

Operational endpoints: checkpoint status, manual runs, rebuilds, resume after
a halt, and an on-demand SLA breach scan.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from momentum.events.infrastructure.repositories import SQLAlchemyEventStore
from momentum.infrastructure.database import get_session
from momentum.projections.application import ProjectionQueryService, ProjectorRunner
from momentum.projections.application.dto import (
    CheckpointResponse,
    ProjectorResultResponse,
    ReadModelResponse,
)
from momentum.projections.infrastructure.repositories import (
    SQLAlchemyCheckpointRepository,
    SQLAlchemyReadModelStore,
)
from momentum.projections.registry import build_projectors
from momentum.sla.application import SLABreachScanner
from momentum.sla.infrastructure import SlackClient, get_sla_config
from momentum.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/projectors", tags=["Projectors"])


# ========== Dependencies ==========

async def get_runner(request: Request, session: AsyncSession = Depends(get_session)) -> ProjectorRunner:
    return ProjectorRunner(
        SQLAlchemyEventStore(session),
        SQLAlchemyCheckpointRepository(session),
        SQLAlchemyReadModelStore(session),
        locks=getattr(request.app.state, "projector_locks", None),
    )


async def get_query_service(session: AsyncSession = Depends(get_session)) -> ProjectionQueryService:
    return ProjectionQueryService(SQLAlchemyReadModelStore(session), build_projectors())


# ========== Routes ==========

@router.get("", response_model=List[CheckpointResponse], summary="List projector checkpoints")
async def list_checkpoints(runner: ProjectorRunner = Depends(get_runner)):
    return [
        CheckpointResponse.from_checkpoint(await runner.get_checkpoint(p.name))
        for p in build_projectors()
    ]


@router.post(
    "/scan-sla",
    summary="Run the SLA breach scanner",
    description="Catches every projector up, then appends SLA breach and warning events "
                "for overdue stages and support clocks."
)
async def scan_sla(
    session: AsyncSession = Depends(get_session),
    runner: ProjectorRunner = Depends(get_runner)
):
    for projector in build_projectors():
        await runner.run_to_completion(projector)
    slack = SlackClient()
    scanner = SLABreachScanner(
        SQLAlchemyEventStore(session),
        SQLAlchemyReadModelStore(session),
        get_sla_config(),
        slack=slack,
    )
    try:
        result = await scanner.scan()
    finally:
        await slack.close()
    return result.to_dict()


@router.post(
    "/{name}/run",
    response_model=ProjectorResultResponse,
    summary="Apply new events",
    description="Processes new events until the log is exhausted. A halted projector returns `halted: true`."
)
async def run_projector(
    name: str,
    runner: ProjectorRunner = Depends(get_runner),
    queries: ProjectionQueryService = Depends(get_query_service)
):
    result = await runner.run_to_completion(queries.projector(name))
    return ProjectorResultResponse.from_result(result)


@router.post(
    "/{name}/rebuild",
    response_model=ProjectorResultResponse,
    summary="Rebuild a projector",
    description="Clears the projector's read models and replays the whole event log."
)
async def rebuild_projector(
    name: str,
    runner: ProjectorRunner = Depends(get_runner),
    queries: ProjectionQueryService = Depends(get_query_service)
):
    result = await runner.rebuild(queries.projector(name))
    return ProjectorResultResponse.from_result(result)


@router.post(
    "/{name}/resume",
    response_model=CheckpointResponse,
    summary="Resume a halted projector",
    description="Clears `error` or `paused` status. The failed event is retried on the next run."
)
async def resume_projector(
    name: str,
    runner: ProjectorRunner = Depends(get_runner),
    queries: ProjectionQueryService = Depends(get_query_service)
):
    queries.projector(name)
    return CheckpointResponse.from_checkpoint(await runner.resume(name))


@router.post("/{name}/pause", response_model=CheckpointResponse, summary="Pause a projector")
async def pause_projector(
    name: str,
    runner: ProjectorRunner = Depends(get_runner),
    queries: ProjectionQueryService = Depends(get_query_service)
):
    queries.projector(name)
    return CheckpointResponse.from_checkpoint(await runner.pause(name))


@router.get(
    "/{name}/read-models",
    response_model=List[ReadModelResponse],
    summary="List read models of a projector"
)
async def list_read_models(
    name: str,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    queries: ProjectionQueryService = Depends(get_query_service)
):
    projector = queries.projector(name)
    states = await queries.list_states(name, limit=limit, offset=offset)
    return [
        ReadModelResponse(
            projector_name=name,
            aggregate_id=data.get("company_product_id") or data.get("support_case_id") or "",
            state=data,
        )
        for data in (projector.serialize(s) for s in states)
    ]


@router.get(
    "/{name}/read-models/{aggregate_id}",
    response_model=ReadModelResponse,
    summary="Get one read model"
)
async def get_read_model(
    name: str,
    aggregate_id: str,
    queries: ProjectionQueryService = Depends(get_query_service)
):
    projector = queries.projector(name)
    state = await queries.get_state(name, aggregate_id)
    return ReadModelResponse(projector_name=name, aggregate_id=aggregate_id, state=projector.serialize(state))
