"""
SLA Breach Scanner
==================

Projections only notice a breach when the next event for an aggregate
arrives. The scanner closes that gap: it walks the current read models, and
for every stage or support clock that went past its deadline it appends an
explicit breach (or warning) event to the aggregate's stream.

Idempotency: a CompanyProduct gets at most one breach and one warning event
per stage visit (probed with has_event_since(stage_entered_at)). A support
clock gets one SlaBreached per configuration: the case stream is checked for
an SlaBreached of that slaType after its last SlaConfigured, so a read model
that lags the log does not cause a second breach.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from momentum.config import ActorType, AggregateType
from momentum.events.application import IEventStore
from momentum.events.domain import NewEvent
from momentum.lifecycle.application import CompanyProductReadModelProjector
from momentum.lifecycle.domain import CompanyProductEvent, CompanyProductReadModel
from momentum.projections.application import IReadModelStore
from momentum.shared.infrastructure.logging import get_logger
from momentum.shared.timeutils import isoformat, utc_now
from momentum.sla.domain import SLACalculator, SLAConfig
from momentum.sla.infrastructure import BreachNotice, SlackClient
from momentum.support.application import SupportCaseProjector
from momentum.support.domain import SupportCaseEvent, SupportCaseReadModel

logger = get_logger(__name__)

SCANNER_ACTOR = "sla_breach_scanner"


@dataclass
class ScanResult:
    """Outcome of one scan. Errors are per aggregate and never abort the scan."""
    success: bool = True
    scanned: int = 0
    breaches_detected: int = 0
    warnings_detected: int = 0
    events_emitted: int = 0
    notifications_sent: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "scanned": self.scanned,
            "breaches_detected": self.breaches_detected,
            "warnings_detected": self.warnings_detected,
            "events_emitted": self.events_emitted,
            "notifications_sent": self.notifications_sent,
            "errors": self.errors,
            "duration_ms": self.duration_ms,
        }


class SLABreachScanner:
    """Emits SLA breach and warning events for overdue aggregates."""

    def __init__(
        self,
        event_store: IEventStore,
        read_models: IReadModelStore,
        config: Optional[SLAConfig] = None,
        slack: Optional[SlackClient] = None,
    ):
        self._store = event_store
        self._read_models = read_models
        self._config = config or SLAConfig()
        self._slack = slack
        self._company_products = CompanyProductReadModelProjector()
        self._support_cases = SupportCaseProjector()

    async def scan(self, now: Optional[datetime] = None) -> ScanResult:
        now = now or utc_now()
        started = time.perf_counter()
        result = ScanResult()

        for record in await self._read_models.list(self._company_products.name):
            result.scanned += 1
            try:
                state = self._company_products.deserialize(record.data)
                await self._scan_company_product(state, now, result)
            except Exception as e:
                self._record_error(result, record.aggregate_id, e)

        for record in await self._read_models.list(self._support_cases.name):
            result.scanned += 1
            try:
                state = self._support_cases.deserialize(record.data)
                await self._scan_support_case(state, now, result)
            except Exception as e:
                self._record_error(result, record.aggregate_id, e)

        result.success = not result.errors
        result.duration_ms = int((time.perf_counter() - started) * 1000)

        logger.info(
            "SLA scan completed",
            extra={
                "scanned": result.scanned,
                "breaches_detected": result.breaches_detected,
                "warnings_detected": result.warnings_detected,
                "events_emitted": result.events_emitted,
                "errors": len(result.errors),
                "duration_ms": result.duration_ms,
            }
        )
        return result

    # ========== CompanyProduct stages ==========

    async def _scan_company_product(
        self,
        state: CompanyProductReadModel,
        now: datetime,
        result: ScanResult
    ) -> None:
        if not state.is_process_active or state.stage_entered_at is None or state.stage_sla_days is None:
            return

        entered = state.stage_entered_at
        sla_days = state.stage_sla_days
        actual_days = SLACalculator.whole_days(entered, now)

        if actual_days > sla_days:
            if await self._store.has_event_since(
                state.company_product_id, CompanyProductEvent.SLA_BREACHED, entered
            ):
                return
            result.breaches_detected += 1
            await self._emit(
                AggregateType.COMPANY_PRODUCT,
                state.company_product_id,
                CompanyProductEvent.SLA_BREACHED,
                {
                    "stageId": state.current_stage_id,
                    "stageName": state.current_stage_name,
                    "slaDays": sla_days,
                    "actualDays": actual_days,
                    "daysOver": actual_days - sla_days,
                },
                now,
                result,
            )
            await self._notify(
                BreachNotice(
                    aggregate_type=AggregateType.COMPANY_PRODUCT,
                    aggregate_id=state.company_product_id,
                    subject=state.current_stage_name or state.current_stage_id or "stage",
                    clock="stage",
                    target=f"{sla_days}d",
                    actual=f"{actual_days}d",
                    over_by=f"{actual_days - sla_days}d",
                    detected_at=isoformat(now),
                ),
                result,
            )
            return

        warning_days = self._warning_days(state)
        if warning_days is None or actual_days < warning_days:
            return
        if await self._store.has_event_since(
            state.company_product_id, CompanyProductEvent.SLA_WARNING, entered
        ):
            return
        result.warnings_detected += 1
        await self._emit(
            AggregateType.COMPANY_PRODUCT,
            state.company_product_id,
            CompanyProductEvent.SLA_WARNING,
            {
                "stageId": state.current_stage_id,
                "stageName": state.current_stage_name,
                "slaDays": sla_days,
                "warningDays": warning_days,
                "actualDays": actual_days,
            },
            now,
            result,
        )

    def _warning_days(self, state: CompanyProductReadModel) -> Optional[int]:
        if state.stage_sla_warning_at is not None and state.stage_entered_at is not None:
            return SLACalculator.whole_days(state.stage_entered_at, state.stage_sla_warning_at)
        definition = self._config.stage(state.current_stage_id)
        return definition.sla_warning_days if definition else None

    # ========== Support cases ==========

    async def _scan_support_case(
        self,
        state: SupportCaseReadModel,
        now: datetime,
        result: ScanResult
    ) -> None:
        if state.is_resolved:
            return
        overdue = [
            clock for clock in state.slas.values()
            if clock.is_running and not clock.is_breached and SLACalculator.is_past(clock.due_at, now)
        ]
        if not overdue:
            return
        already_breached = await self._breached_sla_types(state.support_case_id)
        for clock in overdue:
            if clock.sla_type in already_breached:
                continue
            start = state.opened_at or clock.due_at
            actual_hours = round(SLACalculator.hours_between(start, now), 2)
            over = round(SLACalculator.hours_between(clock.due_at, now), 2)
            result.breaches_detected += 1
            await self._emit(
                AggregateType.SUPPORT_CASE,
                state.support_case_id,
                SupportCaseEvent.SLA_BREACHED,
                {
                    "slaType": clock.sla_type,
                    "targetHours": clock.target_hours,
                    "actualHours": actual_hours,
                    "hoursOver": over,
                    "dueAt": isoformat(clock.due_at),
                    "breachedAt": isoformat(clock.due_at),
                },
                now,
                result,
            )
            await self._notify(
                BreachNotice(
                    aggregate_type=AggregateType.SUPPORT_CASE,
                    aggregate_id=state.support_case_id,
                    subject=state.title or state.support_case_id,
                    clock=clock.sla_type,
                    target=f"{clock.target_hours:g}h" if clock.target_hours is not None else "-",
                    actual=f"{actual_hours:g}h",
                    over_by=f"{over:g}h",
                    detected_at=isoformat(now),
                ),
                result,
            )

    async def _breached_sla_types(self, case_id: str) -> Set[str]:
        """slaTypes with an SlaBreached after their latest SlaConfigured."""
        breached: Set[str] = set()
        for event in await self._store.load_stream(case_id):
            sla_type = event.event_data.get("slaType")
            if event.event_type == SupportCaseEvent.SLA_CONFIGURED:
                breached.discard(sla_type)
            elif event.event_type == SupportCaseEvent.SLA_BREACHED:
                breached.add(sla_type)
        return breached

    # ========== Helpers ==========

    async def _emit(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        data: Dict[str, Any],
        now: datetime,
        result: ScanResult
    ) -> None:
        await self._store.append(NewEvent(
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            event_data=data,
            metadata={"source": SCANNER_ACTOR, "scanTime": isoformat(now)},
            actor_type=ActorType.SYSTEM,
            actor_id=SCANNER_ACTOR,
            occurred_at=now,
        ))
        result.events_emitted += 1
        logger.warning(
            "SLA event emitted",
            extra={"aggregate_id": aggregate_id, "event_type": event_type}
        )

    async def _notify(self, notice: BreachNotice, result: ScanResult) -> None:
        if self._slack is None or not self._slack.enabled:
            return
        if await self._slack.send_breach(notice):
            result.notifications_sent += 1

    @staticmethod
    def _record_error(result: ScanResult, aggregate_id: str, error: Exception) -> None:
        logger.error(
            "SLA scan failed for aggregate",
            extra={"aggregate_id": aggregate_id, "error": str(error)},
            exc_info=True
        )
        result.errors.append({"aggregate_id": aggregate_id, "error": str(error)})
