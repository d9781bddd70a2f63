"""
Support Application Layer
=========================
"""

from momentum.support.application.projector import SupportCaseProjector, engagement_impact_for_csat
from momentum.support.application.services import SupportCaseCommandService

__all__ = [
    "SupportCaseProjector",
    "SupportCaseCommandService",
    "engagement_impact_for_csat",
]
