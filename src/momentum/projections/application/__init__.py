"""
Projection Application Layer
============================

Projector contract, replay helper, runner and store interfaces.
"""

from momentum.projections.application.projector import Projector, PydanticProjector, fold
from momentum.projections.application.services import (
    ICheckpointRepository,
    IReadModelStore,
    ProjectionQueryService,
    ProjectorLocks,
    ProjectorRunner,
)

__all__ = [
    "Projector",
    "PydanticProjector",
    "fold",
    "ICheckpointRepository",
    "IReadModelStore",
    "ProjectionQueryService",
    "ProjectorLocks",
    "ProjectorRunner",
]
