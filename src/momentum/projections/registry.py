"""
Projector Registry
==================

The projectors this service runs. They read SLA settings from event
payloads only, so none of them takes the SLA config.
"""

from typing import List

from momentum.lifecycle.application import (
    CompanyProductReadModelProjector,
    CompanyProductStageFactsProjector,
)
from momentum.projections.application import Projector
from momentum.support.application import SupportCaseProjector


def build_projectors() -> List[Projector]:
    return [
        CompanyProductReadModelProjector(),
        CompanyProductStageFactsProjector(),
        SupportCaseProjector(),
    ]
