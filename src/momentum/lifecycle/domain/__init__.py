"""
Lifecycle Domain Layer
======================

CompanyProduct event names and read models.
"""

from momentum.lifecycle.domain.events import CompanyProductEvent, STAGE_ENTRY_EVENTS
from momentum.lifecycle.domain.read_models import (
    CompanyProductReadModel,
    StageFact,
    StageFactHistory,
)

__all__ = [
    "CompanyProductEvent",
    "STAGE_ENTRY_EVENTS",
    "CompanyProductReadModel",
    "StageFact",
    "StageFactHistory",
]
