"""
SLA Settings Stamping
=====================

Copies the SLA settings in force at append time into an event payload.

Projectors read stage SLA days and support case targets only from the
payload, so a rebuild after the catalog or the severity targets change
reproduces the state that was projected when the events were written.
Keys already present in the payload are never overwritten.
"""

from dataclasses import replace
from typing import Any, Dict

from momentum.config import SLAType
from momentum.events.domain import NewEvent
from momentum.lifecycle.domain import CompanyProductEvent
from momentum.support.domain import SupportCaseEvent
from momentum.sla.domain.value_objects import SLAConfig

# payload keys per stage entry event: (stage id, stage name, stage order)
_STAGE_KEYS = {
    CompanyProductEvent.PROCESS_SET: ("initialStageId", "initialStageName", "initialStageOrder"),
    CompanyProductEvent.STAGE_SET: ("toStageId", "toStageName", "toStageOrder"),
}

SEVERITY_TARGET_KEYS = {
    SLAType.FIRST_RESPONSE: "newFirstResponseTargetHours",
    SLAType.RESOLUTION: "newResolutionTargetHours",
}


def stamp_sla_settings(event: NewEvent, config: SLAConfig) -> NewEvent:
    """Return `event` with missing SLA settings filled from `config`."""
    data = dict(event.event_data)

    if event.event_type in _STAGE_KEYS:
        _stamp_stage(data, config, *_STAGE_KEYS[event.event_type])
    elif event.event_type == SupportCaseEvent.SEVERITY_CHANGED:
        _stamp_severity(data, config)
    elif event.event_type == SupportCaseEvent.SLA_CONFIGURED:
        if data.get("warningAt") is None:
            data.setdefault("warningRatio", config.warning_ratio)

    if data == event.event_data:
        return event
    return replace(event, event_data=data)


def _stamp_stage(data: Dict[str, Any], config: SLAConfig, id_key: str, name_key: str, order_key: str) -> None:
    definition = config.stage(data.get(id_key))
    if definition is None:
        return
    if data.get(name_key) is None:
        data[name_key] = definition.name
    if data.get(order_key) is None:
        data[order_key] = definition.stage_order
    if "slaDays" not in data:
        data["slaDays"] = definition.sla_days
    if "slaWarningDays" not in data:
        data["slaWarningDays"] = definition.sla_warning_days


def _stamp_severity(data: Dict[str, Any], config: SLAConfig) -> None:
    severity = data.get("toSeverity")
    if not severity:
        return
    for sla_type, key in SEVERITY_TARGET_KEYS.items():
        if key not in data:
            target = config.target_hours(severity, sla_type)
            if target is not None:
                data[key] = target
    data.setdefault("warningRatio", config.warning_ratio)
