"""
Support Case Projector
======================

Folds SupportCase events into SupportCaseReadModel.

SLA clocks:
- SlaConfigured starts a clock (due_at / warning_at from the payload).
- The first agent response meets the first_response clock; resolution meets
  the resolution clock. Meeting a clock after its due_at marks it breached.
- A severity change re-targets every clock that is not met yet:
  due_at = opened_at + the new target hours carried in the event. Elapsed
  time is kept; the clock is not restarted at the time of the change.
  An event without a target leaves the clock untouched.
- Any event at or after a running clock's due_at marks it breached.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from momentum.config import (
    AggregateType,
    EngagementImpact,
    SLAType,
    SupportCaseStatus,
)
from momentum.events.domain import StoredEvent
from momentum.projections.application import PydanticProjector
from momentum.shared.timeutils import parse_datetime
from momentum.sla.domain import DEFAULT_WARNING_RATIO, SEVERITY_TARGET_KEYS, SLACalculator
from momentum.support.domain import (
    NEUTRAL_CLOSE_REASONS,
    SlaState,
    SupportCaseEvent,
    SupportCaseReadModel,
)

_DUE_KEYS = {
    SLAType.FIRST_RESPONSE: "newFirstResponseDueAt",
    SLAType.RESOLUTION: "newResolutionDueAt",
}
_WARNING_KEYS = {
    SLAType.FIRST_RESPONSE: "newFirstResponseWarningAt",
    SLAType.RESOLUTION: "newResolutionWarningAt",
}


def _warning_ratio(data: Dict[str, Any]) -> float:
    return float(data.get("warningRatio") or DEFAULT_WARNING_RATIO)


def engagement_impact_for_csat(score: int) -> str:
    if score >= 4:
        return EngagementImpact.POSITIVE
    if score == 3:
        return EngagementImpact.NEUTRAL
    if score == 2:
        return EngagementImpact.NEGATIVE
    return EngagementImpact.CRITICAL


class SupportCaseProjector(PydanticProjector[SupportCaseReadModel]):
    """Projects SupportCase events into SupportCaseReadModel."""

    name = "support_case_read_model"
    aggregate_types = (AggregateType.SUPPORT_CASE,)
    state_model = SupportCaseReadModel

    def get_initial_state(self) -> Optional[SupportCaseReadModel]:
        return None

    def apply(
        self,
        state: Optional[SupportCaseReadModel],
        event: StoredEvent
    ) -> SupportCaseReadModel:
        if state is not None and state.projection_version >= event.sequence_number:
            return state

        case = (
            state.model_copy(deep=True)
            if state is not None
            else SupportCaseReadModel(support_case_id=event.aggregate_id)
        )
        data = event.event_data
        at = event.occurred_at
        kind = event.event_type

        if kind == SupportCaseEvent.CREATED:
            case.title = data.get("title", "")
            case.description = data.get("description")
            case.external_id = data.get("externalId")
            case.source = data.get("source")
            case.severity = data.get("severity", case.severity)
            case.category = data.get("category")
            case.subcategory = data.get("subcategory")
            case.company_id = data.get("companyId")
            case.company_product_id = data.get("companyProductId")
            case.status = SupportCaseStatus.OPEN
            case.opened_at = at
            case.tags = []

        elif kind == SupportCaseEvent.ASSIGNED:
            case.owner_id = data.get("toOwnerId")
            case.owner_name = data.get("toOwnerName")
            case.assigned_team = data.get("team")

        elif kind == SupportCaseEvent.STATUS_CHANGED:
            case.status = data.get("toStatus", case.status)

        elif kind == SupportCaseEvent.SEVERITY_CHANGED:
            case.severity = data.get("toSeverity", case.severity)
            self._retarget(case, data)

        elif kind == SupportCaseEvent.CATEGORY_CHANGED:
            case.category = data.get("toCategory")
            case.subcategory = data.get("toSubcategory")

        elif kind == SupportCaseEvent.CUSTOMER_MESSAGE_LOGGED:
            case.last_customer_contact_at = parse_datetime(data.get("receivedAt")) or at
            case.customer_response_count += 1
            case.response_count += 1

        elif kind == SupportCaseEvent.AGENT_RESPONSE_SENT:
            case.last_agent_response_at = at
            case.agent_response_count += 1
            case.response_count += 1
            if data.get("isFirstResponse") and case.first_response_at is None:
                case.first_response_at = at
                self._meet(case, SLAType.FIRST_RESPONSE, at)

        elif kind == SupportCaseEvent.INTERNAL_NOTE_ADDED:
            case.internal_note_count += 1

        elif kind == SupportCaseEvent.NEXT_ACTION_SET:
            case.next_action = data.get("action")
            case.next_action_due_at = parse_datetime(data.get("dueAt"))

        elif kind == SupportCaseEvent.SLA_CONFIGURED:
            self._configure(case, data, at)

        elif kind == SupportCaseEvent.SLA_BREACHED:
            clock = case.slas.get(data.get("slaType"))
            if clock is not None and not clock.is_breached:
                clock.is_breached = True
                clock.breached_at = parse_datetime(data.get("breachedAt")) or at

        elif kind == SupportCaseEvent.RESOLVED:
            case.status = SupportCaseStatus.RESOLVED
            case.resolved_at = at
            case.resolution_summary = data.get("resolutionSummary")
            case.root_cause = data.get("rootCause")
            case.resolution_time_hours = data.get("resolutionTimeHours")
            if case.resolution_time_hours is None and case.opened_at is not None:
                case.resolution_time_hours = round(SLACalculator.hours_between(case.opened_at, at), 2)
            self._meet(case, SLAType.RESOLUTION, at)

        elif kind == SupportCaseEvent.CLOSED:
            case.status = SupportCaseStatus.CLOSED
            case.closed_at = at
            case.close_reason = data.get("closeReason")
            if case.close_reason in NEUTRAL_CLOSE_REASONS:
                case.engagement_impact = EngagementImpact.NEUTRAL

        elif kind == SupportCaseEvent.REOPENED:
            case.status = SupportCaseStatus.OPEN
            case.closed_at = None
            case.resolved_at = None
            case.resolution_summary = None
            case.close_reason = None
            case.reopen_count += 1
            resolution = case.resolution_sla
            if resolution is not None:
                resolution.met_at = None

        elif kind == SupportCaseEvent.ESCALATED:
            case.status = SupportCaseStatus.ESCALATED
            case.escalation_count += 1
            case.escalation_level = data.get("escalationLevel", case.escalation_level + 1)
            if data.get("escalatedToUserId"):
                case.owner_id = data["escalatedToUserId"]
                case.owner_name = data.get("escalatedToUserName")
            if data.get("escalatedToTeam"):
                case.assigned_team = data["escalatedToTeam"]

        elif kind == SupportCaseEvent.CSAT_SUBMITTED:
            score = int(data.get("score", 0))
            case.csat_score = score
            case.csat_comment = data.get("comment")
            case.csat_submitted_at = at
            case.engagement_impact = engagement_impact_for_csat(score)

        elif kind == SupportCaseEvent.TAG_ADDED:
            tag = data.get("tag")
            if tag and tag not in case.tags:
                case.tags.append(tag)

        elif kind == SupportCaseEvent.TAG_REMOVED:
            case.tags = [t for t in case.tags if t != data.get("tag")]

        self._heartbeat(case, at)

        case.last_event_at = at
        case.last_event_type = kind
        case.last_event_sequence = event.sequence_number
        case.projection_version = event.sequence_number
        return case

    @staticmethod
    def _configure(case: SupportCaseReadModel, data: dict, at: datetime) -> None:
        sla_type = data.get("slaType")
        if not sla_type:
            return
        target = data.get("targetHours")
        start = case.opened_at or at
        due_at = parse_datetime(data.get("dueAt"))
        if due_at is None and target is not None:
            due_at = SLACalculator.target_due_at(start, float(target))
        warning_at = parse_datetime(data.get("warningAt"))
        if warning_at is None and target is not None:
            warning_at = SLACalculator.warning_at(start, float(target), _warning_ratio(data))

        previous = case.slas.get(sla_type)
        case.slas[sla_type] = SlaState(
            sla_type=sla_type,
            target_hours=target,
            due_at=due_at,
            warning_at=warning_at,
            met_at=previous.met_at if previous else None,
            config_source=data.get("configSource"),
        )

    @staticmethod
    def _retarget(case: SupportCaseReadModel, data: dict) -> None:
        start = case.opened_at
        if start is None:
            return
        for sla_type, key in SEVERITY_TARGET_KEYS.items():
            clock = case.slas.get(sla_type)
            target = data.get(key)
            if clock is None or clock.is_met or target is None:
                continue
            clock.target_hours = float(target)
            clock.due_at = (
                parse_datetime(data.get(_DUE_KEYS[sla_type]))
                or SLACalculator.target_due_at(start, float(target))
            )
            clock.warning_at = (
                parse_datetime(data.get(_WARNING_KEYS[sla_type]))
                or SLACalculator.warning_at(start, float(target), _warning_ratio(data))
            )

    @staticmethod
    def _meet(case: SupportCaseReadModel, sla_type: str, at: datetime) -> None:
        clock = case.slas.get(sla_type)
        if clock is None or clock.is_met:
            return
        clock.met_at = at
        if clock.due_at is not None and at > clock.due_at and not clock.is_breached:
            clock.is_breached = True
            clock.breached_at = clock.due_at

    @staticmethod
    def _heartbeat(case: SupportCaseReadModel, at: datetime) -> None:
        if case.is_closed:
            return
        for clock in case.slas.values():
            if clock.is_running and not clock.is_breached and at >= clock.due_at:
                clock.is_breached = True
                clock.breached_at = clock.due_at
