"""
SLA Domain Layer
================

SLA configuration value objects, the stateless SLACalculator and the
append-time stamping of SLA settings into event payloads.

This layer has no dependencies on infrastructure.
"""

from momentum.sla.domain.value_objects import (
    DEFAULT_SEVERITY_TARGETS,
    DEFAULT_WARNING_RATIO,
    SLACalculator,
    SLAConfig,
    SeverityTarget,
    StageDefinition,
    StageExitOutcome,
    stage_slug,
)
from momentum.sla.domain.stamping import SEVERITY_TARGET_KEYS, stamp_sla_settings

__all__ = [
    "DEFAULT_SEVERITY_TARGETS",
    "DEFAULT_WARNING_RATIO",
    "SEVERITY_TARGET_KEYS",
    "SLACalculator",
    "SLAConfig",
    "SeverityTarget",
    "StageDefinition",
    "StageExitOutcome",
    "stage_slug",
    "stamp_sla_settings",
]
