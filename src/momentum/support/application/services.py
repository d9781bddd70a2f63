"""
Support Case Command Service
============================

Validates support case commands against the current state (rebuilt from the
case's own stream) and appends the resulting events with optimistic
concurrency.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from momentum.config import (
    ActorType,
    AggregateType,
    SLAType,
    SupportCaseStatus,
    VALID_CASE_SEVERITIES,
)
from momentum.core.exceptions import (
    ConfigurationException,
    DomainException,
    ResourceNotFoundException,
    ValidationException,
)
from momentum.events.application import IEventStore
from momentum.events.domain import NewEvent
from momentum.projections.application import fold
from momentum.shared.infrastructure.logging import get_logger
from momentum.shared.timeutils import isoformat, utc_now
from momentum.sla.domain import SLACalculator, SLAConfig
from momentum.support.application.projector import SupportCaseProjector
from momentum.support.domain import SupportCaseEvent, SupportCaseReadModel

logger = get_logger(__name__)


class SupportCaseCommandService:
    """Command side of the SupportCase aggregate."""

    def __init__(
        self,
        event_store: IEventStore,
        config: Optional[SLAConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = event_store
        self._config = config or SLAConfig()
        self._projector = SupportCaseProjector()
        self._clock = clock

    # ========== Queries ==========

    async def get(self, case_id: str) -> SupportCaseReadModel:
        state, _ = await self._load(case_id)
        return state

    # ========== Commands ==========

    async def open_case(
        self,
        title: str,
        severity: str = "medium",
        source: str = "email",
        description: Optional[str] = None,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        external_id: Optional[str] = None,
        company_id: Optional[str] = None,
        company_product_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        if severity not in VALID_CASE_SEVERITIES:
            raise ValidationException(f"Invalid severity: {severity}")

        case_id = str(uuid4())
        now = self._clock()
        events: List[Tuple[str, Dict[str, Any]]] = [(
            SupportCaseEvent.CREATED,
            {
                "title": title,
                "description": description,
                "externalId": external_id,
                "source": source,
                "severity": severity,
                "category": category,
                "subcategory": subcategory,
                "companyId": company_id,
                "companyProductId": company_product_id,
            },
        )]
        for sla_type in (SLAType.FIRST_RESPONSE, SLAType.RESOLUTION):
            target = self._target_hours(severity, sla_type)
            events.append((
                SupportCaseEvent.SLA_CONFIGURED,
                {
                    "slaType": sla_type,
                    "targetHours": target,
                    "dueAt": isoformat(SLACalculator.target_due_at(now, target)),
                    "warningAt": isoformat(SLACalculator.warning_at(now, target, self._config.warning_ratio)),
                    "configSource": "severity_default",
                },
            ))

        state = await self._emit(case_id, None, 0, events, actor_id, now)
        logger.info(
            "Support case opened",
            extra={"support_case_id": case_id, "severity": severity, "source": source}
        )
        return state

    async def assign(
        self,
        case_id: str,
        owner_id: str,
        owner_name: Optional[str] = None,
        team: Optional[str] = None,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        self._ensure_not_closed(state, "assign")
        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.ASSIGNED,
            {"fromOwnerId": state.owner_id, "toOwnerId": owner_id, "toOwnerName": owner_name, "team": team},
        )], actor_id)

    async def change_status(
        self,
        case_id: str,
        to_status: str,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        self._ensure_not_closed(state, "change status of")
        if to_status in (SupportCaseStatus.RESOLVED, SupportCaseStatus.CLOSED):
            raise DomainException(f"Use the resolve/close commands to move a case to {to_status}")
        if to_status == state.status:
            return state
        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.STATUS_CHANGED,
            {"fromStatus": state.status, "toStatus": to_status},
        )], actor_id)

    async def change_severity(
        self,
        case_id: str,
        to_severity: str,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        """
        Change severity and re-target the running SLA clocks.

        The new target hours travel in the event so replays do not depend on
        the SLA configuration in force at replay time.
        """
        if to_severity not in VALID_CASE_SEVERITIES:
            raise ValidationException(f"Invalid severity: {to_severity}")
        state, version = await self._load(case_id)
        self._ensure_not_closed(state, "change severity of")
        if to_severity == state.severity:
            return state

        data: Dict[str, Any] = {
            "fromSeverity": state.severity,
            "toSeverity": to_severity,
            "reason": reason,
        }
        for sla_type, prefix in (
            (SLAType.FIRST_RESPONSE, "newFirstResponse"),
            (SLAType.RESOLUTION, "newResolution"),
        ):
            clock = state.slas.get(sla_type)
            if clock is None or clock.is_met:
                continue
            target = self._target_hours(to_severity, sla_type)
            data[f"{prefix}TargetHours"] = target
            data[f"{prefix}DueAt"] = isoformat(SLACalculator.target_due_at(state.opened_at, target))
            data[f"{prefix}WarningAt"] = isoformat(
                SLACalculator.warning_at(state.opened_at, target, self._config.warning_ratio)
            )

        return await self._emit(
            case_id, state, self._version(version, expected_version),
            [(SupportCaseEvent.SEVERITY_CHANGED, data)], actor_id
        )

    async def log_customer_message(
        self,
        case_id: str,
        received_at: Optional[datetime] = None,
        summary: Optional[str] = None,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        received = received_at or self._clock()
        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.CUSTOMER_MESSAGE_LOGGED,
            {"receivedAt": isoformat(received), "summary": summary},
        )], actor_id)

    async def record_agent_response(
        self,
        case_id: str,
        responder_id: Optional[str] = None,
        summary: Optional[str] = None,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        self._ensure_not_closed(state, "respond to")
        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.AGENT_RESPONSE_SENT,
            {
                "responderId": responder_id or actor_id,
                "summary": summary,
                "isFirstResponse": state.first_response_at is None,
            },
        )], actor_id)

    async def configure_sla(
        self,
        case_id: str,
        sla_type: str,
        target_hours: float,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        """Set a custom SLA clock counting from now."""
        state, version = await self._load(case_id)
        if state.is_closed:
            raise DomainException("Cannot configure SLA on a closed case")
        now = self._clock()
        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.SLA_CONFIGURED,
            {
                "slaType": sla_type,
                "targetHours": target_hours,
                "dueAt": isoformat(SLACalculator.target_due_at(now, target_hours)),
                "warningAt": isoformat(SLACalculator.warning_at(now, target_hours, self._config.warning_ratio)),
                "configSource": "manual",
            },
        )], actor_id, now)

    async def resolve(
        self,
        case_id: str,
        resolution_summary: str,
        root_cause: Optional[str] = None,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        if state.is_resolved:
            raise DomainException("Support case is already resolved")
        if not resolution_summary or not resolution_summary.strip():
            raise ValidationException("Resolution summary is required")

        now = self._clock()
        hours = round(SLACalculator.hours_between(state.opened_at, now), 2) if state.opened_at else None
        resolution = state.resolution_sla
        sla_hours = resolution.target_hours if resolution else None
        sla_met = None
        if resolution is not None and resolution.due_at is not None:
            sla_met = now <= resolution.due_at

        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.RESOLVED,
            {
                "resolutionSummary": resolution_summary.strip(),
                "rootCause": root_cause,
                "resolutionTimeHours": hours,
                "slaHours": sla_hours,
                "slaMet": sla_met,
            },
        )], actor_id, now)

    async def close(
        self,
        case_id: str,
        close_reason: str = "resolved",
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        if state.is_closed:
            raise DomainException("Support case is already closed")
        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.CLOSED,
            {"closeReason": close_reason, "previousStatus": state.status},
        )], actor_id)

    async def reopen(
        self,
        case_id: str,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        if not state.is_resolved:
            raise DomainException("Only resolved or closed cases can be reopened")
        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.REOPENED,
            {"reason": reason, "previousStatus": state.status},
        )], actor_id)

    async def escalate(
        self,
        case_id: str,
        reason: Optional[str] = None,
        to_team: Optional[str] = None,
        to_user_id: Optional[str] = None,
        to_user_name: Optional[str] = None,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        self._ensure_not_closed(state, "escalate")
        if state.status == SupportCaseStatus.RESOLVED:
            raise DomainException("Cannot escalate a resolved case")
        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.ESCALATED,
            {
                "escalationLevel": state.escalation_level + 1,
                "reason": reason,
                "escalatedToTeam": to_team,
                "escalatedToUserId": to_user_id,
                "escalatedToUserName": to_user_name,
            },
        )], actor_id)

    async def submit_csat(
        self,
        case_id: str,
        score: int,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> SupportCaseReadModel:
        if not 1 <= score <= 5:
            raise ValidationException("CSAT score must be between 1 and 5")
        state, version = await self._load(case_id)
        if not state.is_resolved:
            raise DomainException("CSAT can only be submitted for resolved or closed cases")
        return await self._emit(case_id, state, self._version(version, expected_version), [(
            SupportCaseEvent.CSAT_SUBMITTED,
            {"score": score, "comment": comment},
        )], actor_id)

    async def add_tag(self, case_id: str, tag: str, expected_version: Optional[int] = None,
                      actor_id: Optional[str] = None) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        if tag in state.tags:
            return state
        return await self._emit(case_id, state, self._version(version, expected_version),
                                [(SupportCaseEvent.TAG_ADDED, {"tag": tag})], actor_id)

    async def remove_tag(self, case_id: str, tag: str, expected_version: Optional[int] = None,
                         actor_id: Optional[str] = None) -> SupportCaseReadModel:
        state, version = await self._load(case_id)
        if tag not in state.tags:
            return state
        return await self._emit(case_id, state, self._version(version, expected_version),
                                [(SupportCaseEvent.TAG_REMOVED, {"tag": tag})], actor_id)

    # ========== Helpers ==========

    async def _load(self, case_id: str) -> Tuple[SupportCaseReadModel, int]:
        events = await self._store.load_stream(case_id)
        if not events:
            raise ResourceNotFoundException("Support case", case_id)
        state = fold(self._projector, events)
        return state, events[-1].sequence_number

    def _target_hours(self, severity: str, sla_type: str) -> float:
        target = self._config.target_hours(severity, sla_type)
        if target is None:
            raise ConfigurationException(
                f"No {sla_type} SLA target configured for severity {severity}",
                {"severity": severity, "sla_type": sla_type}
            )
        return target

    @staticmethod
    def _version(loaded: int, expected: Optional[int]) -> int:
        return loaded if expected is None else expected

    @staticmethod
    def _ensure_not_closed(state: SupportCaseReadModel, action: str) -> None:
        if state.is_closed:
            raise DomainException(f"Cannot {action} a closed case")

    async def _emit(
        self,
        case_id: str,
        state: Optional[SupportCaseReadModel],
        expected_version: int,
        events: Sequence[Tuple[str, Dict[str, Any]]],
        actor_id: Optional[str],
        occurred_at: Optional[datetime] = None,
    ) -> SupportCaseReadModel:
        at = occurred_at or self._clock()
        new_events = [
            NewEvent(
                aggregate_type=AggregateType.SUPPORT_CASE,
                aggregate_id=case_id,
                event_type=event_type,
                event_data=data,
                actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
                actor_id=actor_id,
                occurred_at=at,
            )
            for event_type, data in events
        ]
        stored = await self._store.append_many(new_events, expected_version=expected_version)
        return fold(self._projector, stored, state)
