"""
Command Center Domain Layer
===========================

Items, attention flags, AI analysis schemas, tiering, scoring and dedup.
"""

from momentum.command_center.domain.analysis import (
    AIAnalysis,
    CommandCenterClassification,
    EmailAnalysis,
    LegacyEmailAnalysis,
    RequiredAction,
    TranscriptActionItem,
    TranscriptAnalysis,
    adapt_legacy,
    analysis_adapter,
    parse_email_analysis,
    parse_transcript_analysis,
)
from momentum.command_center.domain.dedup import (
    email_source_key,
    source_hash,
    transcript_source_key,
)
from momentum.command_center.domain.entities import (
    AttentionFlag,
    AttentionFlagType,
    CommandCenterItem,
    FLAG_TYPE_DEFAULT_SEVERITY,
    SEVERITY_ORDER,
    WorkflowStep,
)
from momentum.command_center.domain.linking import CompanyRef, extract_company_from_title
from momentum.command_center.domain.sources import (
    ContactRecord,
    EmailRecord,
    SourceCounts,
    TranscriptRecord,
    UserRecord,
)
from momentum.command_center.domain.scoring import (
    EngagementSignals,
    MomentumScore,
    RiskSignals,
    ScoringContext,
    calculate_momentum_score,
)
from momentum.command_center.domain.tiers import (
    COMMUNICATION_TYPE_TIERS,
    NEEDS_AI_CLASSIFICATION,
    TIER_NAMES,
    ClassificationContext,
    TierAssignment,
    TierResult,
    classify_item,
    group_by_tier,
    tier_for_transcript,
    tier_from_ai_analysis,
)

__all__ = [
    "AIAnalysis",
    "CommandCenterClassification",
    "EmailAnalysis",
    "LegacyEmailAnalysis",
    "RequiredAction",
    "TranscriptActionItem",
    "TranscriptAnalysis",
    "adapt_legacy",
    "analysis_adapter",
    "parse_email_analysis",
    "parse_transcript_analysis",
    "email_source_key",
    "source_hash",
    "transcript_source_key",
    "AttentionFlag",
    "AttentionFlagType",
    "CommandCenterItem",
    "FLAG_TYPE_DEFAULT_SEVERITY",
    "SEVERITY_ORDER",
    "WorkflowStep",
    "CompanyRef",
    "extract_company_from_title",
    "ContactRecord",
    "EmailRecord",
    "SourceCounts",
    "TranscriptRecord",
    "UserRecord",
    "EngagementSignals",
    "MomentumScore",
    "RiskSignals",
    "ScoringContext",
    "calculate_momentum_score",
    "COMMUNICATION_TYPE_TIERS",
    "NEEDS_AI_CLASSIFICATION",
    "TIER_NAMES",
    "ClassificationContext",
    "TierAssignment",
    "TierResult",
    "classify_item",
    "group_by_tier",
    "tier_for_transcript",
    "tier_from_ai_analysis",
]
