"""
Command Center Repositories
===========================

SQLAlchemy implementations of the command center repositories.
"""

from typing import List, Optional, Sequence

from sqlalchemy import and_, func, not_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from momentum.config import ACTIVE_ITEM_STATUSES, settings
from momentum.core.exceptions import ResourceNotFoundException
from momentum.command_center.application.services import (
    IAttentionFlagRepository,
    ICommandCenterRepository,
    ISourceRepository,
)
from momentum.command_center.domain import (
    AttentionFlag,
    CommandCenterItem,
    CompanyRef,
    ContactRecord,
    EmailRecord,
    SourceCounts,
    TranscriptRecord,
    UserRecord,
    WorkflowStep,
)
from momentum.command_center.infrastructure.models import (
    AttentionFlagModel,
    CommandCenterItemModel,
    CompanyModel,
    ContactModel,
    DealModel,
    EmailMessageModel,
    MeetingTranscriptionModel,
    UserModel,
)
from momentum.shared.infrastructure.logging import get_logger
from momentum.shared.timeutils import ensure_utc

logger = get_logger(__name__)

# Item fields stored one-to-one in columns
_ITEM_COLUMNS = (
    "user_id", "contact_id", "company_id", "deal_id", "conversation_id", "email_id",
    "meeting_id", "title", "description", "tier", "tier_trigger", "why_now",
    "action_type", "status", "source", "source_hash", "momentum_score",
    "estimated_minutes", "deal_value", "deal_probability", "sla_minutes",
    "sla_status", "urgency_score", "value_score", "promise_date", "commitment_text",
    "received_at", "due_at", "started_at", "completed_at", "dismissed_at",
    "dismissed_reason", "snoozed_until", "snooze_count", "created_at", "updated_at",
)

_ITEM_DATETIMES = (
    "promise_date", "received_at", "due_at", "started_at", "completed_at",
    "dismissed_at", "snoozed_until", "created_at", "updated_at",
)

_FLAG_COLUMNS = (
    "company_id", "company_product_id", "source_type", "source_id", "flag_type",
    "severity", "reason", "recommended_action", "owner", "status", "snoozed_until",
    "created_at", "updated_at", "resolved_at",
)


# ========== Command center items ==========

def _item_to_entity(model: CommandCenterItemModel) -> CommandCenterItem:
    values = {name: getattr(model, name) for name in _ITEM_COLUMNS}
    for name in _ITEM_DATETIMES:
        values[name] = ensure_utc(values[name])
    return CommandCenterItem(
        id=model.id,
        workflow_steps=[WorkflowStep.from_dict(s) for s in (model.workflow_steps or [])],
        score_explanation=list(model.score_explanation or []),
        **values,
    )


def _copy_item(item: CommandCenterItem, model: CommandCenterItemModel) -> None:
    for name in _ITEM_COLUMNS:
        setattr(model, name, getattr(item, name))
    model.workflow_steps = [s.to_dict() for s in item.workflow_steps]
    model.score_explanation = list(item.score_explanation)


class SQLAlchemyCommandCenterRepository(ICommandCenterRepository):
    """SQLAlchemy implementation for command center items."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, item_id: str) -> Optional[CommandCenterItem]:
        model = await self._session.get(CommandCenterItemModel, item_id)
        return _item_to_entity(model) if model else None

    async def add(self, item: CommandCenterItem) -> bool:
        model = CommandCenterItemModel(id=item.id)
        _copy_item(item, model)
        try:
            # A duplicate rolls back only this savepoint
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError:
            logger.info(
                "Duplicate source_hash on insert",
                extra={"item_id": item.id, "source_hash": item.source_hash}
            )
            return False
        return True

    async def save(self, item: CommandCenterItem) -> None:
        model = await self._session.get(CommandCenterItemModel, item.id)
        if model is None:
            raise ResourceNotFoundException("Command center item", item.id)
        _copy_item(item, model)
        await self._session.flush()

    async def exists_by_source_hash(self, source_hash: str) -> bool:
        stmt = select(CommandCenterItemModel.id).where(
            CommandCenterItemModel.source_hash == source_hash
        ).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_for_user(
        self,
        user_id: str,
        statuses: Optional[Sequence[str]] = None
    ) -> List[CommandCenterItem]:
        stmt = select(CommandCenterItemModel).where(CommandCenterItemModel.user_id == user_id)
        if statuses:
            stmt = stmt.where(CommandCenterItemModel.status.in_(list(statuses)))
        stmt = stmt.order_by(CommandCenterItemModel.created_at)
        result = await self._session.execute(stmt)
        return [_item_to_entity(m) for m in result.scalars().all()]

    async def list_by_trigger(
        self,
        tier_trigger: str,
        statuses: Sequence[str],
        limit: int
    ) -> List[CommandCenterItem]:
        stmt = (
            select(CommandCenterItemModel)
            .where(
                CommandCenterItemModel.tier_trigger == tier_trigger,
                CommandCenterItemModel.status.in_(list(statuses))
            )
            .order_by(CommandCenterItemModel.created_at)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_item_to_entity(m) for m in result.scalars().all()]

    async def count_active(self) -> int:
        stmt = select(func.count()).select_from(CommandCenterItemModel).where(
            CommandCenterItemModel.status.in_(ACTIVE_ITEM_STATUSES)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_with_source_hash(self) -> int:
        stmt = select(func.count()).select_from(CommandCenterItemModel).where(
            CommandCenterItemModel.source_hash.is_not(None)
        )
        return (await self._session.execute(stmt)).scalar_one()


# ========== CRM sources ==========

class SQLAlchemySourceRepository(ISourceRepository):
    """Reads the CRM tables the command center is generated from."""

    def __init__(self, session: AsyncSession, internal_email_domains: Optional[Sequence[str]] = None):
        self._session = session
        self._internal = list(
            internal_email_domains if internal_email_domains is not None else settings.internal_email_domains
        )

    async def _count(self, model, *criteria) -> int:
        stmt = select(func.count()).select_from(model)
        if criteria:
            stmt = stmt.where(*criteria)
        return (await self._session.execute(stmt)).scalar_one()

    async def find_user_with_auth_id(self) -> Optional[UserRecord]:
        stmt = select(UserModel).where(UserModel.auth_id.is_not(None)).limit(1)
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        if model is None:
            return None
        return UserRecord(id=model.id, email=model.email, auth_id=model.auth_id)

    async def list_analyzed_emails(self, limit: int) -> List[EmailRecord]:
        stmt = (
            select(EmailMessageModel)
            .where(
                EmailMessageModel.analysis_complete.is_(True),
                EmailMessageModel.ai_analysis.is_not(None)
            )
            .order_by(EmailMessageModel.received_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [
            EmailRecord(
                id=m.id,
                subject=m.subject,
                from_email=m.from_email,
                from_name=m.from_name,
                ai_analysis=m.ai_analysis,
                received_at=ensure_utc(m.received_at),
                conversation_ref=m.conversation_ref,
            )
            for m in result.scalars().all()
        ]

    async def list_analyzed_transcripts(self, limit: int) -> List[TranscriptRecord]:
        stmt = (
            select(MeetingTranscriptionModel)
            .where(MeetingTranscriptionModel.analysis.is_not(None))
            .order_by(MeetingTranscriptionModel.meeting_date.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [
            TranscriptRecord(
                id=m.id,
                title=m.title,
                analysis=m.analysis,
                meeting_date=ensure_utc(m.meeting_date),
            )
            for m in result.scalars().all()
        ]

    async def find_contact_by_email(self, email: str) -> Optional[ContactRecord]:
        stmt = select(ContactModel).where(ContactModel.email == email).limit(1)
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        if model is None:
            return None
        return ContactRecord(id=model.id, email=model.email, name=model.name, company_id=model.company_id)

    async def list_companies(self) -> List[CompanyRef]:
        result = await self._session.execute(select(CompanyModel.id, CompanyModel.name))
        return [CompanyRef(id=row.id, name=row.name) for row in result.all()]

    async def count_sources(self) -> SourceCounts:
        inbound = []
        if self._internal:
            inbound.append(or_(
                EmailMessageModel.from_email.is_(None),
                not_(or_(*[EmailMessageModel.from_email.ilike(f"%{d}%") for d in self._internal]))
            ))

        return SourceCounts(
            emails_total=await self._count(EmailMessageModel),
            emails_inbound=await self._count(EmailMessageModel, *inbound),
            emails_analyzed=await self._count(EmailMessageModel, EmailMessageModel.analysis_complete.is_(True)),
            transcripts_total=await self._count(MeetingTranscriptionModel),
            transcripts_analyzed=await self._count(
                MeetingTranscriptionModel, MeetingTranscriptionModel.analysis.is_not(None)
            ),
            contacts=await self._count(ContactModel),
            companies=await self._count(CompanyModel),
            deals=await self._count(DealModel),
        )


# ========== Attention flags ==========

def _flag_to_entity(model: AttentionFlagModel) -> AttentionFlag:
    values = {name: getattr(model, name) for name in _FLAG_COLUMNS}
    for name in ("snoozed_until", "created_at", "updated_at", "resolved_at"):
        values[name] = ensure_utc(values[name])
    return AttentionFlag(id=model.id, **values)


class SQLAlchemyAttentionFlagRepository(IAttentionFlagRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, flag_id: str) -> Optional[AttentionFlag]:
        model = await self._session.get(AttentionFlagModel, flag_id)
        return _flag_to_entity(model) if model else None

    async def add(self, flag: AttentionFlag) -> None:
        model = AttentionFlagModel(id=flag.id)
        for name in _FLAG_COLUMNS:
            setattr(model, name, getattr(flag, name))
        self._session.add(model)
        await self._session.flush()

    async def save(self, flag: AttentionFlag) -> None:
        model = await self._session.get(AttentionFlagModel, flag.id)
        if model is None:
            raise ResourceNotFoundException("Attention flag", flag.id)
        for name in _FLAG_COLUMNS:
            setattr(model, name, getattr(flag, name))
        await self._session.flush()

    async def list(
        self,
        company_id: Optional[str] = None,
        statuses: Optional[Sequence[str]] = None
    ) -> List[AttentionFlag]:
        criteria = []
        if company_id:
            criteria.append(AttentionFlagModel.company_id == company_id)
        if statuses:
            criteria.append(AttentionFlagModel.status.in_(list(statuses)))
        stmt = select(AttentionFlagModel)
        if criteria:
            stmt = stmt.where(and_(*criteria))
        stmt = stmt.order_by(AttentionFlagModel.created_at)
        result = await self._session.execute(stmt)
        return [_flag_to_entity(m) for m in result.scalars().all()]
