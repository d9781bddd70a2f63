"""
SLA Value Objects
==================

SLA targets, the stage catalog and the pure date arithmetic behind every
SLA clock in the system.

Two kinds of clocks exist:
- stage clocks (CompanyProduct lifecycle): due_at = entered_at + sla_days
- support case clocks: due_at = opened_at + target hours for the severity

Neither is ever restarted by a later event; re-targeting recomputes due_at
from the original start.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from momentum.config import SLAType, VALID_CASE_SEVERITIES


DEFAULT_SEVERITY_TARGETS: Dict[str, Dict[str, float]] = {
    "critical": {"first_response": 1, "resolution": 4},
    "urgent": {"first_response": 2, "resolution": 8},
    "high": {"first_response": 4, "resolution": 24},
    "medium": {"first_response": 8, "resolution": 48},
    "low": {"first_response": 24, "resolution": 72},
}

DEFAULT_WARNING_RATIO = 0.75


class StageDefinition(BaseModel):
    """One stage of a lifecycle process."""
    stage_id: str
    name: str
    stage_order: int = Field(default=0, ge=0)
    sla_days: Optional[int] = Field(default=None, ge=0)
    sla_warning_days: Optional[int] = Field(default=None, ge=0)

    @property
    def slug(self) -> str:
        return stage_slug(self.name)


class SeverityTarget(BaseModel):
    """Target hours per support case SLA clock."""
    first_response: float = Field(gt=0)
    resolution: float = Field(gt=0)


class SLAConfig(BaseModel):
    """
    SLA configuration loaded from YAML.

    Missing severities fall back to DEFAULT_SEVERITY_TARGETS.
    """
    severity_targets: Dict[str, SeverityTarget] = Field(
        default_factory=dict,
        validate_default=True,
        description="Target hours per severity and clock type"
    )
    warning_ratio: float = Field(
        default=DEFAULT_WARNING_RATIO,
        gt=0,
        lt=1,
        description="Fraction of the target after which a clock is in warning"
    )
    stages: Dict[str, StageDefinition] = Field(
        default_factory=dict,
        description="Lifecycle stage catalog keyed by stage_id"
    )
    notify_channels: List[str] = Field(
        default_factory=lambda: ["#command-center-alerts"],
        description="Slack channels notified on breaches"
    )

    @field_validator("severity_targets", mode="before")
    @classmethod
    def fill_severity_targets(cls, v: Optional[dict]) -> dict:
        """Ensure every severity has first response and resolution targets."""
        targets = dict(v or {})
        for severity in VALID_CASE_SEVERITIES:
            defaults = DEFAULT_SEVERITY_TARGETS[severity]
            configured = targets.get(severity)
            if configured is None:
                targets[severity] = dict(defaults)
            elif isinstance(configured, dict):
                targets[severity] = {**defaults, **configured}
        return targets

    @field_validator("stages", mode="before")
    @classmethod
    def key_stages(cls, v):
        """Accept either a mapping or a list of stage definitions."""
        if isinstance(v, list):
            return {item["stage_id"]: item for item in v}
        return v or {}

    def target_hours(self, severity: str, sla_type: str) -> Optional[float]:
        target = self.severity_targets.get(severity)
        if target is None:
            return None
        if sla_type == SLAType.FIRST_RESPONSE:
            return target.first_response
        if sla_type == SLAType.RESOLUTION:
            return target.resolution
        return None

    def stage(self, stage_id: Optional[str]) -> Optional[StageDefinition]:
        if not stage_id:
            return None
        return self.stages.get(stage_id)


def stage_slug(name: Optional[str]) -> Optional[str]:
    """'Technical Review' -> 'technical-review'."""
    if not name:
        return None
    return "-".join(name.lower().split())


@dataclass(frozen=True)
class StageExitOutcome:
    """SLA verdict for a completed stage visit."""
    duration_seconds: int
    business_days: int
    sla_met: Optional[bool]
    days_over_sla: Optional[int]


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class: every SLA date computation lives here.
    """

    @staticmethod
    def stage_due_at(entered_at: datetime, sla_days: Optional[int]) -> Optional[datetime]:
        if sla_days is None:
            return None
        return entered_at + timedelta(days=sla_days)

    @staticmethod
    def target_due_at(started_at: datetime, target_hours: float) -> datetime:
        return started_at + timedelta(hours=target_hours)

    @staticmethod
    def warning_at(started_at: datetime, target_hours: float, ratio: float = DEFAULT_WARNING_RATIO) -> datetime:
        return started_at + timedelta(hours=target_hours * ratio)

    @staticmethod
    def whole_days(start: datetime, end: datetime) -> int:
        """Floor of elapsed days (negative spans count as 0)."""
        return max(0, math.floor((end - start).total_seconds() / 86400))

    @staticmethod
    def hours_between(start: datetime, end: datetime) -> float:
        return (end - start).total_seconds() / 3600

    @staticmethod
    def business_days_between(start: datetime, end: datetime) -> int:
        """
        Count Monday-Friday days stepping one day at a time from `start`
        while the cursor is before `end`.
        """
        count = 0
        cursor = start
        while cursor < end:
            if cursor.weekday() < 5:
                count += 1
            cursor += timedelta(days=1)
        return count

    @staticmethod
    def evaluate_stage_exit(
        entered_at: datetime,
        exited_at: datetime,
        sla_days: Optional[int]
    ) -> StageExitOutcome:
        business_days = SLACalculator.business_days_between(entered_at, exited_at)
        sla_met = None
        days_over = None
        if sla_days is not None:
            sla_met = business_days <= sla_days
            if not sla_met:
                days_over = business_days - sla_days
        return StageExitOutcome(
            duration_seconds=max(0, math.floor((exited_at - entered_at).total_seconds())),
            business_days=business_days,
            sla_met=sla_met,
            days_over_sla=days_over,
        )

    @staticmethod
    def is_past(deadline: Optional[datetime], at: datetime) -> bool:
        return deadline is not None and at >= deadline
