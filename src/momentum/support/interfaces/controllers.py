"""
Support Case Controllers (API Routes)
=====================================

Command endpoints for the SupportCase aggregate. Every command returns the
case read model as it stands after the command's events.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from momentum.events.infrastructure.repositories import SQLAlchemyEventStore
from momentum.infrastructure.database import get_session
from momentum.sla.infrastructure import get_sla_config
from momentum.support.application import SupportCaseCommandService
from momentum.support.application.dto import (
    AgentResponseRequest,
    AssignRequest,
    ChangeSeverityRequest,
    ChangeStatusRequest,
    CloseRequest,
    ConfigureSlaRequest,
    CsatRequest,
    CustomerMessageRequest,
    EscalateRequest,
    OpenSupportCaseRequest,
    ReopenRequest,
    ResolveRequest,
    TagRequest,
)
from momentum.support.domain import SupportCaseReadModel

router = APIRouter(prefix="/support-cases", tags=["Support Cases"])


# ========== Dependencies ==========

async def get_support_service(
    session: AsyncSession = Depends(get_session)
) -> SupportCaseCommandService:
    return SupportCaseCommandService(SQLAlchemyEventStore(session), get_sla_config())


ActorHeader = Header(default=None, alias="X-Actor-Id")


# ========== Routes ==========

@router.post(
    "",
    response_model=SupportCaseReadModel,
    status_code=status.HTTP_201_CREATED,
    summary="Open a support case",
    description="Creates the case and starts first response and resolution SLA clocks from the severity defaults."
)
async def open_case(
    request: OpenSupportCaseRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.open_case(
        title=request.title,
        severity=request.severity,
        source=request.source,
        description=request.description,
        category=request.category,
        subcategory=request.subcategory,
        external_id=request.external_id,
        company_id=request.company_id,
        company_product_id=request.company_product_id,
        actor_id=actor_id,
    )


@router.get("/{case_id}", response_model=SupportCaseReadModel, summary="Get a support case")
async def get_case(case_id: str, service: SupportCaseCommandService = Depends(get_support_service)):
    return await service.get(case_id)


@router.post(
    "/{case_id}/severity",
    response_model=SupportCaseReadModel,
    summary="Change severity",
    description="""
    Changes severity and re-targets every unmet SLA clock.

    New due dates count from when the case was opened, so time already
    elapsed still counts against the new target.
    """
)
async def change_severity(
    case_id: str,
    request: ChangeSeverityRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.change_severity(
        case_id, request.to_severity, reason=request.reason,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/assign", response_model=SupportCaseReadModel, summary="Assign an owner")
async def assign(
    case_id: str,
    request: AssignRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.assign(
        case_id, request.owner_id, owner_name=request.owner_name, team=request.team,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/status", response_model=SupportCaseReadModel, summary="Change working status")
async def change_status(
    case_id: str,
    request: ChangeStatusRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.change_status(
        case_id, request.to_status,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/messages", response_model=SupportCaseReadModel, summary="Log a customer message")
async def log_customer_message(
    case_id: str,
    request: CustomerMessageRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.log_customer_message(
        case_id, received_at=request.received_at, summary=request.summary,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post(
    "/{case_id}/responses",
    response_model=SupportCaseReadModel,
    summary="Record an agent response",
    description="The first agent response meets the first response SLA."
)
async def record_agent_response(
    case_id: str,
    request: AgentResponseRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.record_agent_response(
        case_id, responder_id=request.responder_id, summary=request.summary,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/sla", response_model=SupportCaseReadModel, summary="Configure a custom SLA clock")
async def configure_sla(
    case_id: str,
    request: ConfigureSlaRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.configure_sla(
        case_id, request.sla_type, request.target_hours,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/resolve", response_model=SupportCaseReadModel, summary="Resolve a case")
async def resolve(
    case_id: str,
    request: ResolveRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.resolve(
        case_id, request.resolution_summary, root_cause=request.root_cause,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/close", response_model=SupportCaseReadModel, summary="Close a case")
async def close(
    case_id: str,
    request: CloseRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.close(
        case_id, close_reason=request.close_reason,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/reopen", response_model=SupportCaseReadModel, summary="Reopen a case")
async def reopen(
    case_id: str,
    request: ReopenRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.reopen(
        case_id, reason=request.reason,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/escalate", response_model=SupportCaseReadModel, summary="Escalate a case")
async def escalate(
    case_id: str,
    request: EscalateRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.escalate(
        case_id, reason=request.reason, to_team=request.to_team,
        to_user_id=request.to_user_id, to_user_name=request.to_user_name,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/csat", response_model=SupportCaseReadModel, summary="Submit a CSAT score")
async def submit_csat(
    case_id: str,
    request: CsatRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.submit_csat(
        case_id, request.score, comment=request.comment,
        expected_version=request.expected_version, actor_id=actor_id
    )


@router.post("/{case_id}/tags", response_model=SupportCaseReadModel, summary="Add a tag")
async def add_tag(
    case_id: str,
    request: TagRequest,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.add_tag(
        case_id, request.tag, expected_version=request.expected_version, actor_id=actor_id
    )


@router.delete("/{case_id}/tags/{tag}", response_model=SupportCaseReadModel, summary="Remove a tag")
async def remove_tag(
    case_id: str,
    tag: str,
    actor_id: Optional[str] = ActorHeader,
    service: SupportCaseCommandService = Depends(get_support_service)
):
    return await service.remove_tag(case_id, tag, actor_id=actor_id)
