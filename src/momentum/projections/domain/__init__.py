"""
Projection Domain Layer
=======================
"""

from momentum.projections.domain.entities import (
    ProjectorCheckpoint,
    ProjectorError,
    ProjectorResult,
    StoredReadModel,
)

__all__ = [
    "ProjectorCheckpoint",
    "ProjectorError",
    "ProjectorResult",
    "StoredReadModel",
]
