"""
Command Center Controllers (API Routes)
=======================================

FastAPI routes for the tiered action feed and attention flags.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from momentum.command_center.application import AttentionFlagService, CommandCenterService
from momentum.command_center.application.dto import (
    AttentionFlagResponse,
    CommandCenterItemResponse,
    CreateAttentionFlagRequest,
    FeedResponse,
    FeedTierResponse,
    MomentumScoreResponse,
    ScoreItemRequest,
    SnoozeRequest,
    UpdateItemStatusRequest,
)
from momentum.command_center.infrastructure import (
    SQLAlchemyAttentionFlagRepository,
    SQLAlchemyCommandCenterRepository,
)
from momentum.infrastructure.database import get_session

router = APIRouter(prefix="/command-center", tags=["Command Center"])
flags_router = APIRouter(prefix="/attention-flags", tags=["Attention Flags"])


# ========== Dependencies ==========

async def get_command_center_service(
    session: AsyncSession = Depends(get_session)
) -> CommandCenterService:
    return CommandCenterService(SQLAlchemyCommandCenterRepository(session))


async def get_flag_service(session: AsyncSession = Depends(get_session)) -> AttentionFlagService:
    return AttentionFlagService(SQLAlchemyAttentionFlagRepository(session))


# ========== Command Center Routes ==========

@router.get(
    "",
    response_model=FeedResponse,
    summary="Get the tiered feed",
    description="""
    Active items of a user grouped by tier (1 = RESPOND NOW first).

    Snoozed items reappear once their snooze has expired. Within a tier:
    SLA status for tier 1, urgency for tier 2, most overdue promise for
    tier 3, value for tier 4, momentum score for tier 5.
    """
)
async def get_feed(
    user_id: str = Query(..., description="Owner of the items"),
    service: CommandCenterService = Depends(get_command_center_service)
):
    feed = await service.get_feed(user_id)
    return FeedResponse(
        user_id=feed.user_id,
        generated_at=feed.generated_at,
        total=feed.total,
        tiers=[
            FeedTierResponse(
                tier=t.tier,
                name=t.name,
                count=len(t.items),
                items=[CommandCenterItemResponse.from_entity(i) for i in t.items],
            )
            for t in feed.tiers
        ],
    )


@router.get("/{item_id}", response_model=CommandCenterItemResponse, summary="Get one item")
async def get_item(item_id: str, service: CommandCenterService = Depends(get_command_center_service)):
    return CommandCenterItemResponse.from_entity(await service.get_item(item_id))


@router.patch(
    "/{item_id}/status",
    response_model=CommandCenterItemResponse,
    summary="Change item status",
    description="Start, complete, snooze (needs `snoozed_until`), dismiss, or reopen (`pending`) an item."
)
async def update_item_status(
    item_id: str,
    request: UpdateItemStatusRequest,
    service: CommandCenterService = Depends(get_command_center_service)
):
    item = await service.update_status(
        item_id,
        request.status,
        snoozed_until=request.snoozed_until,
        dismissed_reason=request.dismissed_reason,
    )
    return CommandCenterItemResponse.from_entity(item)


@router.post(
    "/{item_id}/score",
    response_model=MomentumScoreResponse,
    summary="Recompute momentum score",
    description="Scores the item from base priority, time pressure, value, engagement, risk and orphan penalty."
)
async def score_item(
    item_id: str,
    request: Optional[ScoreItemRequest] = None,
    service: CommandCenterService = Depends(get_command_center_service)
):
    context = request.to_context() if request else None
    score = await service.score_item(item_id, context)
    return MomentumScoreResponse.from_score(item_id, score)


# ========== Attention Flag Routes ==========

@flags_router.get("", response_model=List[AttentionFlagResponse], summary="List attention flags")
async def list_flags(
    company_id: Optional[str] = Query(default=None),
    include_inactive: bool = Query(default=False, description="Include resolved and still-snoozed flags"),
    service: AttentionFlagService = Depends(get_flag_service)
):
    flags = await service.list_flags(company_id=company_id, include_inactive=include_inactive)
    return [AttentionFlagResponse.from_entity(f) for f in flags]


@flags_router.post(
    "",
    response_model=AttentionFlagResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Raise an attention flag"
)
async def create_flag(
    request: CreateAttentionFlagRequest,
    service: AttentionFlagService = Depends(get_flag_service)
):
    flag = await service.raise_flag(**request.model_dump())
    return AttentionFlagResponse.from_entity(flag)


@flags_router.post("/{flag_id}/snooze", response_model=AttentionFlagResponse, summary="Snooze a flag")
async def snooze_flag(
    flag_id: str,
    request: SnoozeRequest,
    service: AttentionFlagService = Depends(get_flag_service)
):
    return AttentionFlagResponse.from_entity(await service.snooze(flag_id, request.snoozed_until))


@flags_router.post("/{flag_id}/resolve", response_model=AttentionFlagResponse, summary="Resolve a flag")
async def resolve_flag(flag_id: str, service: AttentionFlagService = Depends(get_flag_service)):
    return AttentionFlagResponse.from_entity(await service.resolve(flag_id))


@flags_router.post("/{flag_id}/reopen", response_model=AttentionFlagResponse, summary="Reopen a flag")
async def reopen_flag(flag_id: str, service: AttentionFlagService = Depends(get_flag_service)):
    return AttentionFlagResponse.from_entity(await service.reopen(flag_id))
