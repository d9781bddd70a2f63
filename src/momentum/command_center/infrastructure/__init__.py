"""
Command Center Infrastructure Layer
===================================
"""

from momentum.command_center.infrastructure.memory import (
    InMemoryAttentionFlagRepository,
    InMemoryCommandCenterRepository,
    InMemorySourceRepository,
)
from momentum.command_center.infrastructure.repositories import (
    SQLAlchemyAttentionFlagRepository,
    SQLAlchemyCommandCenterRepository,
    SQLAlchemySourceRepository,
)

__all__ = [
    "InMemoryAttentionFlagRepository",
    "InMemoryCommandCenterRepository",
    "InMemorySourceRepository",
    "SQLAlchemyAttentionFlagRepository",
    "SQLAlchemyCommandCenterRepository",
    "SQLAlchemySourceRepository",
]
