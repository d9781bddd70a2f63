"""
Command Center Application Layer
================================
"""

from momentum.command_center.application.builder import ItemBuilder, workflow_title
from momentum.command_center.application.services import (
    AttentionFlagService,
    CommandCenterService,
    Feed,
    FeedTier,
    IAttentionFlagRepository,
    ICommandCenterRepository,
    ISourceRepository,
    InventoryReport,
    ReanalysisResult,
    ReanalysisService,
    RecordError,
    RegenerationResult,
    RegenerationService,
    extract_json,
)

__all__ = [
    "ItemBuilder",
    "workflow_title",
    "AttentionFlagService",
    "CommandCenterService",
    "Feed",
    "FeedTier",
    "IAttentionFlagRepository",
    "ICommandCenterRepository",
    "ISourceRepository",
    "InventoryReport",
    "ReanalysisResult",
    "ReanalysisService",
    "RecordError",
    "RegenerationResult",
    "RegenerationService",
    "extract_json",
]
