"""
Support Domain Layer
====================
"""

from momentum.support.domain.events import NEUTRAL_CLOSE_REASONS, SupportCaseEvent
from momentum.support.domain.read_models import SlaState, SupportCaseReadModel

__all__ = [
    "NEUTRAL_CLOSE_REASONS",
    "SupportCaseEvent",
    "SlaState",
    "SupportCaseReadModel",
]
