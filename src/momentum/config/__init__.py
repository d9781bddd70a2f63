"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="momentum-command-center", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: Optional[str] = Field(
        default=None,
        description="Database connection URL (async driver, e.g. postgresql+asyncpg://...)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA configuration YAML file"
    )
    sla_scan_interval: int = Field(
        default=900,
        description="Seconds between SLA breach scans",
        ge=10
    )

    # ========== Projectors ==========
    projector_batch_size: int = Field(
        default=100,
        description="Events fetched per projector batch",
        ge=1,
        le=10000
    )
    projector_run_interval: int = Field(
        default=30,
        description="Seconds between background projector catch-up runs",
        ge=1
    )

    # ========== Scheduling ==========
    default_timezone: str = Field(
        default="America/New_York",
        description="Timezone used when a user or payload does not specify one"
    )

    # ========== Command Center ==========
    regenerate_email_limit: int = Field(
        default=500,
        description="Analyzed emails processed per regeneration run",
        ge=1
    )
    regenerate_transcript_limit: int = Field(
        default=200,
        description="Analyzed transcripts processed per regeneration run",
        ge=1
    )
    avg_deal_size: float = Field(
        default=30000.0,
        description="Average deal size used to normalize value scoring",
        gt=0
    )
    internal_email_domains: List[str] = Field(
        default=[],
        description="Sender address fragments treated as internal when counting inbound email"
    )
    reanalysis_batch_size: int = Field(
        default=50,
        description="Unclassified items sent to the LLM per reanalysis run",
        ge=1
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for SLA breach notifications"
    )
    slack_channel: str = Field(
        default="#command-center-alerts",
        description="Slack channel for SLA notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== LLM Settings ==========
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key used for item reanalysis"
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model used for command center classification"
    )
    llm_temperature: float = Field(
        default=0.2,
        description="Default temperature for LLM",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=800,
        description="Default max tokens for LLM generation",
        ge=1,
        le=8000
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses for testing (no API calls)"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class ActorType(str):
    """Who caused an event."""
    USER = "user"
    SYSTEM = "system"
    AI = "ai"


class AggregateType(str):
    """Aggregate roots persisted in the event store."""
    COMPANY_PRODUCT = "CompanyProduct"
    SUPPORT_CASE = "SupportCase"


class ProjectorStatus(str):
    """Projector checkpoint statuses."""
    ACTIVE = "active"
    PAUSED = "paused"
    REBUILDING = "rebuilding"
    ERROR = "error"


class SupportCaseStatus(str):
    """Support case lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING_ON_CUSTOMER = "waiting_on_customer"
    WAITING_ON_INTERNAL = "waiting_on_internal"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SupportCaseSeverity(str):
    """Support case severities."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"


class SupportCaseSource(str):
    """Channels a support case can arrive through."""
    EMAIL = "email"
    PHONE = "phone"
    CHAT = "chat"
    PORTAL = "portal"
    INTERNAL = "internal"


class SLAType(str):
    """Types of support case SLA clocks."""
    FIRST_RESPONSE = "first_response"
    RESOLUTION = "resolution"
    UPDATE = "update"


class EngagementImpact(str):
    """Effect of a support case on account engagement."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    CRITICAL = "critical"


class ExitReason(str):
    """Why a stage visit ended."""
    PROGRESSED = "progressed"
    REGRESSED = "regressed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TierSlaStatus(str):
    """SLA status of a command center item against its playbook target."""
    ON_TRACK = "on_track"
    WARNING = "warning"
    BREACHED = "breached"


class ItemStatus(str):
    """Command center item statuses."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SNOOZED = "snoozed"
    DISMISSED = "dismissed"


class ItemSource(str):
    """Where a command center item came from."""
    AI_RECOMMENDATION = "ai_recommendation"
    TRANSCRIPTION = "transcription"
    CALENDAR_SYNC = "calendar_sync"
    FORM_SUBMISSION = "form_submission"
    CALENDLY = "calendly"
    MANUAL = "manual"


class ActionType(str):
    """Kinds of work a command center item represents."""
    WORKFLOW = "workflow"
    TASK_SIMPLE = "task_simple"
    TASK_COMPLEX = "task_complex"
    EMAIL_RESPOND = "email_respond"
    MEETING_FOLLOW_UP = "meeting_follow_up"
    CALL = "call"


class FlagSeverity(str):
    """Attention flag severities."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FlagOwner(str):
    """Who is expected to act on an attention flag."""
    HUMAN = "human"
    AI = "ai"


class FlagStatus(str):
    """Attention flag lifecycle statuses."""
    OPEN = "open"
    SNOOZED = "snoozed"
    RESOLVED = "resolved"


class FlagSourceType(str):
    """What raised an attention flag."""
    COMMUNICATION = "communication"
    PIPELINE = "pipeline"
    SYSTEM = "system"


# ========== Lists for validation ==========

VALID_ACTOR_TYPES = [ActorType.USER, ActorType.SYSTEM, ActorType.AI]
VALID_PROJECTOR_STATUSES = [
    ProjectorStatus.ACTIVE, ProjectorStatus.PAUSED,
    ProjectorStatus.REBUILDING, ProjectorStatus.ERROR
]
VALID_CASE_STATUSES = [
    SupportCaseStatus.OPEN, SupportCaseStatus.IN_PROGRESS,
    SupportCaseStatus.WAITING_ON_CUSTOMER, SupportCaseStatus.WAITING_ON_INTERNAL,
    SupportCaseStatus.ESCALATED, SupportCaseStatus.RESOLVED,
    SupportCaseStatus.CLOSED
]
VALID_CASE_SEVERITIES = [
    SupportCaseSeverity.LOW, SupportCaseSeverity.MEDIUM,
    SupportCaseSeverity.HIGH, SupportCaseSeverity.URGENT,
    SupportCaseSeverity.CRITICAL
]
VALID_CASE_SOURCES = [
    SupportCaseSource.EMAIL, SupportCaseSource.PHONE, SupportCaseSource.CHAT,
    SupportCaseSource.PORTAL, SupportCaseSource.INTERNAL
]
VALID_SLA_TYPES = [SLAType.FIRST_RESPONSE, SLAType.RESOLUTION, SLAType.UPDATE]
VALID_ITEM_STATUSES = [
    ItemStatus.PENDING, ItemStatus.IN_PROGRESS, ItemStatus.COMPLETED,
    ItemStatus.SNOOZED, ItemStatus.DISMISSED
]
ACTIVE_ITEM_STATUSES = [ItemStatus.PENDING, ItemStatus.IN_PROGRESS]
VALID_FLAG_SEVERITIES = [
    FlagSeverity.LOW, FlagSeverity.MEDIUM,
    FlagSeverity.HIGH, FlagSeverity.CRITICAL
]
VALID_FLAG_OWNERS = [FlagOwner.HUMAN, FlagOwner.AI]
VALID_FLAG_STATUSES = [FlagStatus.OPEN, FlagStatus.SNOOZED, FlagStatus.RESOLVED]
VALID_FLAG_SOURCE_TYPES = [
    FlagSourceType.COMMUNICATION, FlagSourceType.PIPELINE, FlagSourceType.SYSTEM
]
