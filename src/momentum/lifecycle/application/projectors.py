"""
Lifecycle Projectors
====================

CompanyProductReadModelProjector keeps the current snapshot of each
CompanyProduct; CompanyProductStageFactsProjector keeps the history of stage
visits with their SLA verdicts.

Stage name, order and SLA settings (slaDays, slaWarningDays) come only from
the event payload; they are stamped from the stage catalog at append time.
Every time-dependent field is computed from event.occurred_at, never from
the wall clock, so replays are deterministic.
"""

from typing import Any, Dict, Optional

from momentum.config import AggregateType, ExitReason
from momentum.events.domain import StoredEvent
from momentum.lifecycle.domain import (
    CompanyProductEvent,
    CompanyProductReadModel,
    STAGE_ENTRY_EVENTS,
    StageFact,
    StageFactHistory,
)
from momentum.projections.application import PydanticProjector
from momentum.sla.domain import SLACalculator, stage_slug


def _stage_details(stage_name: Optional[str], data: Dict[str, Any], order_key: str) -> Dict[str, Any]:
    """Slug, order and SLA settings of the stage an event enters."""
    return {
        "name": stage_name,
        "slug": stage_slug(stage_name),
        "order": data.get(order_key),
        "sla_days": data.get("slaDays"),
        "sla_warning_days": data.get("slaWarningDays"),
    }


class CompanyProductReadModelProjector(PydanticProjector[CompanyProductReadModel]):
    """Projects CompanyProduct events into CompanyProductReadModel."""

    name = "company_product_read_model"
    aggregate_types = (AggregateType.COMPANY_PRODUCT,)
    state_model = CompanyProductReadModel

    def get_initial_state(self) -> Optional[CompanyProductReadModel]:
        return None

    def apply(
        self,
        state: Optional[CompanyProductReadModel],
        event: StoredEvent
    ) -> CompanyProductReadModel:
        if state is not None and state.projection_version >= event.sequence_number:
            return state

        model = (
            state.model_copy(deep=True)
            if state is not None
            else CompanyProductReadModel(company_product_id=event.aggregate_id)
        )
        data = event.event_data
        at = event.occurred_at
        explicit_total_days = False

        if event.event_type == CompanyProductEvent.PROCESS_SET:
            model.current_process_type = data.get("toProcessType")
            model.current_process_id = data.get("toProcessId")
            model.process_started_at = at
            model.process_completed_at = None
            model.total_process_days = 0
            model.stage_transition_count = 1 if data.get("initialStageId") else 0
            model.is_sla_breached = False
            model.is_sla_warning = False
            if data.get("initialStageId"):
                self._enter_stage(model, data["initialStageId"], data.get("initialStageName"), data, "initialStageOrder", at)
            else:
                self._clear_stage(model)

        elif event.event_type == CompanyProductEvent.STAGE_SET:
            model.stage_transition_count += 1
            model.is_sla_breached = False
            model.is_sla_warning = False
            self._enter_stage(model, data.get("toStageId"), data.get("toStageName"), data, "toStageOrder", at)

        elif event.event_type == CompanyProductEvent.PROCESS_COMPLETED:
            model.process_completed_at = at
            if data.get("durationDays") is not None:
                model.total_process_days = int(data["durationDays"])
                explicit_total_days = True
            if data.get("stageTransitionCount") is not None:
                model.stage_transition_count = int(data["stageTransitionCount"])

        elif event.event_type == CompanyProductEvent.HEALTH_UPDATED:
            model.health_score = data.get("toScore")
            model.risk_level = data.get("riskLevel")
            model.risk_factors = list(data.get("factors") or [])

        elif event.event_type == CompanyProductEvent.HEALTH_COMPUTED:
            model.health_score = data.get("toScore")
            model.risk_level = data.get("riskLevel")
            model.risk_factors = list(data.get("reasons") or [])

        elif event.event_type == CompanyProductEvent.RISK_LEVEL_SET:
            model.risk_level = data.get("toRiskLevel")
            model.risk_factors = list(data.get("reasons") or [])

        elif event.event_type == CompanyProductEvent.SLA_WARNING:
            model.is_sla_warning = True

        elif event.event_type == CompanyProductEvent.SLA_BREACHED:
            model.is_sla_breached = True
            model.is_sla_warning = True

        elif event.event_type == CompanyProductEvent.OWNER_SET:
            model.owner_id = data.get("toOwnerId")
            model.owner_name = data.get("toOwnerName")

        elif event.event_type == CompanyProductEvent.TIER_SET:
            model.tier = data.get("toTier")

        elif event.event_type == CompanyProductEvent.MRR_SET:
            model.mrr = data.get("toMRR")
            model.mrr_currency = data.get("currency")

        elif event.event_type == CompanyProductEvent.SEATS_SET:
            model.seats = data.get("toSeats")

        elif event.event_type == CompanyProductEvent.NEXT_STEP_DUE_SET:
            model.next_step = data.get("toNextStep")
            model.next_step_due_date = data.get("toDueDate")
            model.is_next_step_overdue = bool(data.get("isOverdue", False))

        if event.event_type not in STAGE_ENTRY_EVENTS:
            self._age(model, at, explicit_total_days)

        model.last_event_at = at
        model.last_event_type = event.event_type
        model.last_event_sequence = event.sequence_number
        model.projection_version = event.sequence_number
        return model

    def _enter_stage(
        self,
        model: CompanyProductReadModel,
        stage_id: Optional[str],
        stage_name: Optional[str],
        data: Dict[str, Any],
        order_key: str,
        at,
    ) -> None:
        details = _stage_details(stage_name, data, order_key)
        model.current_stage_id = stage_id
        model.current_stage_name = details["name"]
        model.current_stage_slug = details["slug"]
        model.current_stage_order = details["order"]
        model.stage_entered_at = at
        model.days_in_current_stage = 0
        model.stage_sla_days = details["sla_days"]
        model.stage_sla_deadline = SLACalculator.stage_due_at(at, details["sla_days"])
        model.stage_sla_warning_at = (
            SLACalculator.stage_due_at(at, details["sla_warning_days"])
            if details["sla_days"] is not None
            else None
        )

    @staticmethod
    def _clear_stage(model: CompanyProductReadModel) -> None:
        model.current_stage_id = None
        model.current_stage_name = None
        model.current_stage_slug = None
        model.current_stage_order = None
        model.stage_entered_at = None
        model.days_in_current_stage = 0
        model.stage_sla_days = None
        model.stage_sla_deadline = None
        model.stage_sla_warning_at = None

    @staticmethod
    def _age(model: CompanyProductReadModel, at, explicit_total_days: bool) -> None:
        """Recompute elapsed days and SLA flags as of the event time."""
        if model.stage_entered_at is not None:
            model.days_in_current_stage = SLACalculator.whole_days(model.stage_entered_at, at)
        if model.process_started_at is not None and not explicit_total_days:
            end = model.process_completed_at or at
            model.total_process_days = SLACalculator.whole_days(model.process_started_at, end)

        if model.process_completed_at is not None:
            return
        if SLACalculator.is_past(model.stage_sla_deadline, at):
            model.is_sla_breached = True
            model.is_sla_warning = True
        elif SLACalculator.is_past(model.stage_sla_warning_at, at):
            model.is_sla_warning = True


class CompanyProductStageFactsProjector(PydanticProjector[StageFactHistory]):
    """
    Projects stage entries and exits into StageFactHistory.

    Invariant: at most one open fact per CompanyProduct. Entering a stage
    closes the open fact first.
    """

    name = "company_product_stage_facts"
    aggregate_types = (AggregateType.COMPANY_PRODUCT,)
    state_model = StageFactHistory

    def get_initial_state(self) -> Optional[StageFactHistory]:
        return None

    def apply(self, state: Optional[StageFactHistory], event: StoredEvent) -> Optional[StageFactHistory]:
        if event.event_type not in (
            CompanyProductEvent.PROCESS_SET,
            CompanyProductEvent.STAGE_SET,
            CompanyProductEvent.PROCESS_COMPLETED,
        ):
            return state
        if state is not None and state.projection_version >= event.sequence_number:
            return state

        history = (
            state.model_copy(deep=True)
            if state is not None
            else StageFactHistory(company_product_id=event.aggregate_id)
        )
        event_id = str(event.id)
        data = event.event_data

        if event.event_type == CompanyProductEvent.PROCESS_SET:
            self._close_open(history, event, ExitReason.CANCELLED)
            if data.get("initialStageId") and not history.has_entry(event_id):
                history.facts.append(self._open_fact(
                    event,
                    data["initialStageId"],
                    data.get("initialStageName"),
                    "initialStageOrder",
                    process_id=data.get("toProcessId"),
                    process_type=data.get("toProcessType"),
                ))

        elif event.event_type == CompanyProductEvent.STAGE_SET:
            if not history.has_entry(event_id):
                previous = history.open_fact
                from_order = data.get("fromStageOrder")
                if from_order is None and previous is not None:
                    from_order = previous.stage_order
                to_details = _stage_details(data.get("toStageName"), data, "toStageOrder")
                to_order = to_details["order"]

                reason = ExitReason.PROGRESSED
                if to_order is not None and from_order is not None and to_order < from_order:
                    reason = ExitReason.REGRESSED
                self._close_open(history, event, reason)

                history.facts.append(self._open_fact(
                    event,
                    data.get("toStageId"),
                    data.get("toStageName"),
                    "toStageOrder",
                    process_id=previous.process_id if previous else data.get("processId"),
                    process_type=previous.process_type if previous else data.get("processType"),
                ))

        elif event.event_type == CompanyProductEvent.PROCESS_COMPLETED:
            self._close_open(history, event, ExitReason.COMPLETED)

        history.projection_version = event.sequence_number
        return history

    def _open_fact(
        self,
        event: StoredEvent,
        stage_id: str,
        stage_name: Optional[str],
        order_key: str,
        process_id: Optional[str],
        process_type: Optional[str],
    ) -> StageFact:
        details = _stage_details(stage_name, event.event_data, order_key)
        return StageFact(
            stage_id=stage_id,
            stage_name=details["name"],
            stage_slug=details["slug"],
            stage_order=details["order"],
            process_id=process_id,
            process_type=process_type,
            entered_at=event.occurred_at,
            sla_days=details["sla_days"],
            entry_event_id=str(event.id),
        )

    @staticmethod
    def _close_open(history: StageFactHistory, event: StoredEvent, reason: str) -> None:
        fact = history.open_fact
        if fact is None:
            return
        outcome = SLACalculator.evaluate_stage_exit(fact.entered_at, event.occurred_at, fact.sla_days)
        fact.exited_at = event.occurred_at
        fact.duration_seconds = outcome.duration_seconds
        fact.duration_business_days = outcome.business_days
        fact.sla_met = outcome.sla_met
        fact.days_over_sla = outcome.days_over_sla
        fact.exit_reason = reason
        fact.exit_event_id = str(event.id)
