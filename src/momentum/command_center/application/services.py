"""
Command Center Application Services
===================================

Application services for the prioritized action feed.

- RegenerationService: rebuilds items from analyzed emails and transcripts
- ReanalysisService: asks the LLM to classify items parked as
  needs_ai_classification
- CommandCenterService: feed, status changes, momentum scoring
- AttentionFlagService: raise, snooze and resolve attention flags
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from momentum.config import FlagOwner, FlagSourceType, ItemStatus, settings
from momentum.core.exceptions import (
    ConfigurationException,
    LLMException,
    ResourceNotFoundException,
)
from momentum.command_center.application.builder import ItemBuilder
from momentum.command_center.domain import (
    COMMUNICATION_TYPE_TIERS,
    NEEDS_AI_CLASSIFICATION,
    TIER_NAMES,
    AttentionFlag,
    CommandCenterItem,
    CompanyRef,
    ContactRecord,
    EmailRecord,
    MomentumScore,
    ScoringContext,
    SourceCounts,
    TranscriptRecord,
    UserRecord,
    calculate_momentum_score,
    classify_item,
    group_by_tier,
)
from momentum.command_center.domain.analysis import CommandCenterClassification
from momentum.command_center.domain.entities import SEVERITY_ORDER
from momentum.infrastructure.llm import ILLMClient
from momentum.shared.infrastructure.logging import get_logger
from momentum.shared.timeutils import utc_now

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ICommandCenterRepository(ABC):
    """Persistence for command center items."""

    @abstractmethod
    async def get(self, item_id: str) -> Optional[CommandCenterItem]:
        """Get item by ID."""

    @abstractmethod
    async def add(self, item: CommandCenterItem) -> bool:
        """Insert a new item; False when its source_hash already exists."""

    @abstractmethod
    async def save(self, item: CommandCenterItem) -> None:
        """Update an existing item."""

    @abstractmethod
    async def exists_by_source_hash(self, source_hash: str) -> bool:
        """Check whether an item was already generated from this source."""

    @abstractmethod
    async def list_for_user(
        self,
        user_id: str,
        statuses: Optional[Sequence[str]] = None
    ) -> List[CommandCenterItem]:
        """Items of one user, optionally filtered by status."""

    @abstractmethod
    async def list_by_trigger(
        self,
        tier_trigger: str,
        statuses: Sequence[str],
        limit: int
    ) -> List[CommandCenterItem]:
        """Items with the given tier trigger, oldest first."""

    @abstractmethod
    async def count_active(self) -> int:
        """Pending and in-progress items."""

    @abstractmethod
    async def count_with_source_hash(self) -> int:
        """Items generated from a source record."""


class ISourceRepository(ABC):
    """Read access to the CRM records items are generated from."""

    @abstractmethod
    async def find_user_with_auth_id(self) -> Optional[UserRecord]:
        """A user that can sign in; generated items are owned by this user."""

    @abstractmethod
    async def list_analyzed_emails(self, limit: int) -> List[EmailRecord]:
        """Emails with a completed AI analysis, newest first."""

    @abstractmethod
    async def list_analyzed_transcripts(self, limit: int) -> List[TranscriptRecord]:
        """Transcripts with an analysis, most recent meeting first."""

    @abstractmethod
    async def find_contact_by_email(self, email: str) -> Optional[ContactRecord]:
        """Contact whose address matches the sender."""

    @abstractmethod
    async def list_companies(self) -> List[CompanyRef]:
        """Every company (id, name) for title matching."""

    @abstractmethod
    async def count_sources(self) -> SourceCounts:
        """Row counts for the inventory report."""


class IAttentionFlagRepository(ABC):
    """Persistence for attention flags."""

    @abstractmethod
    async def get(self, flag_id: str) -> Optional[AttentionFlag]:
        """Get flag by ID."""

    @abstractmethod
    async def add(self, flag: AttentionFlag) -> None:
        """Insert a new flag."""

    @abstractmethod
    async def save(self, flag: AttentionFlag) -> None:
        """Update an existing flag."""

    @abstractmethod
    async def list(
        self,
        company_id: Optional[str] = None,
        statuses: Optional[Sequence[str]] = None
    ) -> List[AttentionFlag]:
        """Flags, optionally for one company and/or status set."""


# ========== Regeneration ==========

@dataclass
class InventoryReport:
    emails_total: int
    emails_inbound: int
    emails_analyzed: int
    transcripts_total: int
    transcripts_analyzed: int
    contacts: int
    companies: int
    deals: int
    active_items: int
    items_with_hash: int

    def to_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)


@dataclass
class RecordError:
    source: str
    record_id: str
    message: str


@dataclass
class RegenerationResult:
    """Counters of one regeneration run. Created per run, never shared."""

    emails_processed: int = 0
    transcripts_processed: int = 0
    items_created: int = 0
    duplicates_skipped: int = 0
    items_needing_reanalysis: int = 0
    transcripts_linked_to_company: int = 0
    tier_counts: Dict[int, int] = field(default_factory=lambda: {tier: 0 for tier in TIER_NAMES})
    errors: List[RecordError] = field(default_factory=list)
    final_active_count: int = 0
    duration_ms: int = 0

    def record_created(self, tier: int) -> None:
        self.items_created += 1
        self.tier_counts[tier] = self.tier_counts.get(tier, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "emails_processed": self.emails_processed,
            "transcripts_processed": self.transcripts_processed,
            "items_created": self.items_created,
            "duplicates_skipped": self.duplicates_skipped,
            "items_needing_reanalysis": self.items_needing_reanalysis,
            "transcripts_linked_to_company": self.transcripts_linked_to_company,
            "tier_counts": {str(k): v for k, v in self.tier_counts.items()},
            "errors": [e.__dict__ for e in self.errors],
            "final_active_count": self.final_active_count,
            "duration_ms": self.duration_ms,
        }


class RegenerationService:
    """
    Rebuilds command center items from already-analyzed sources.

    Idempotent through source_hash: a source that already produced an item is
    counted as a duplicate and skipped. A failing record is logged, recorded
    on the result, and does not stop the run.
    """

    def __init__(
        self,
        items: ICommandCenterRepository,
        sources: ISourceRepository,
        builder: Optional[ItemBuilder] = None
    ):
        self._items = items
        self._sources = sources
        self._builder = builder or ItemBuilder()

    async def inventory(self) -> InventoryReport:
        counts = await self._sources.count_sources()
        return InventoryReport(
            emails_total=counts.emails_total,
            emails_inbound=counts.emails_inbound,
            emails_analyzed=counts.emails_analyzed,
            transcripts_total=counts.transcripts_total,
            transcripts_analyzed=counts.transcripts_analyzed,
            contacts=counts.contacts,
            companies=counts.companies,
            deals=counts.deals,
            active_items=await self._items.count_active(),
            items_with_hash=await self._items.count_with_source_hash(),
        )

    async def regenerate(self, limit: int = 0) -> RegenerationResult:
        """
        Process analyzed emails, then transcripts.

        Args:
            limit: Max rows per source; 0 uses the configured defaults

        Raises:
            ConfigurationException: If no user with an auth id exists
        """
        start_time = time.perf_counter()

        user = await self._sources.find_user_with_auth_id()
        if user is None:
            raise ConfigurationException(
                "No user with auth_id found; generated items would not be visible",
                {"table": "users"}
            )

        result = RegenerationResult()
        logger.info("Regeneration started", extra={"user_id": user.id, "limit": limit})

        emails = await self._sources.list_analyzed_emails(limit or settings.regenerate_email_limit)
        for email in emails:
            try:
                await self._process_email(user, email, result)
            except Exception as e:
                self._record_error(result, "email", email.id, e)

        companies = await self._sources.list_companies()
        transcripts = await self._sources.list_analyzed_transcripts(
            limit or settings.regenerate_transcript_limit
        )
        for transcript in transcripts:
            try:
                await self._process_transcript(user, transcript, companies, result)
            except Exception as e:
                self._record_error(result, "transcript", transcript.id, e)

        result.final_active_count = await self._items.count_active()
        result.duration_ms = int((time.perf_counter() - start_time) * 1000)

        logger.info(
            "Regeneration completed",
            extra={
                "emails_processed": result.emails_processed,
                "transcripts_processed": result.transcripts_processed,
                "items_created": result.items_created,
                "duplicates_skipped": result.duplicates_skipped,
                "errors": len(result.errors),
                "duration_ms": result.duration_ms,
            }
        )
        return result

    async def _process_email(self, user: UserRecord, email: EmailRecord, result: RegenerationResult) -> None:
        if not email.ai_analysis:
            return

        parsed = self._builder.email_actions(email)
        if not parsed.actions:
            return

        built_hash = self._builder.email_hash(parsed)
        if await self._items.exists_by_source_hash(built_hash):
            result.duplicates_skipped += 1
            return

        contact = None
        if email.from_email:
            contact = await self._sources.find_contact_by_email(email.from_email)

        built = self._builder.build_email_item(user.id, email, parsed, contact)
        if built.assignment.needs_reanalysis:
            result.items_needing_reanalysis += 1

        if await self._items.add(built.item):
            result.record_created(built.item.tier)
        else:
            result.duplicates_skipped += 1
        result.emails_processed += 1

    async def _process_transcript(
        self,
        user: UserRecord,
        transcript: TranscriptRecord,
        companies: Sequence[CompanyRef],
        result: RegenerationResult
    ) -> None:
        if not transcript.analysis:
            return

        built = self._builder.build_transcript_item(user.id, transcript, companies)
        if built is None:
            return

        if await self._items.exists_by_source_hash(built.item.source_hash):
            result.duplicates_skipped += 1
            return

        if not await self._items.add(built.item):
            result.duplicates_skipped += 1
            return

        result.record_created(built.item.tier)
        result.transcripts_processed += 1
        if built.company is not None:
            result.transcripts_linked_to_company += 1

    @staticmethod
    def _record_error(result: RegenerationResult, source: str, record_id: str, error: Exception) -> None:
        logger.error(
            f"Failed to process {source}",
            extra={"source": source, "record_id": record_id, "error": str(error)}
        )
        result.errors.append(RecordError(source=source, record_id=record_id, message=str(error)))


# ========== Reanalysis ==========

REANALYSIS_SYSTEM_PROMPT = """You classify sales follow-up items into a 5-tier playbook.

Tiers:
1 RESPOND NOW - someone is waiting (minutes matter)
2 DON'T LOSE THIS - deadline or competition (hours matter)
3 KEEP YOUR WORD - you promised something (same day)
4 MOVE BIG DEALS - high value, needs attention (this week)
5 BUILD PIPELINE - important but not urgent

Known tier triggers: {triggers}

Respond ONLY with valid JSON:
{{"command_center_classification": {{"tier": <1-5>, "tier_trigger": "<trigger>", "why_now": "<one sentence>"}}}}"""


@dataclass
class ReanalysisResult:
    processed: int = 0
    reclassified: int = 0
    still_unclassified: int = 0
    errors: List[RecordError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "reclassified": self.reclassified,
            "still_unclassified": self.still_unclassified,
            "errors": [e.__dict__ for e in self.errors],
        }


def extract_json(content: str) -> Any:
    """Parse a JSON reply, tolerating a surrounding markdown code fence."""
    text = content
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return json.loads(text)


class ReanalysisService:
    """Classifies items that were parked as needs_ai_classification."""

    def __init__(self, items: ICommandCenterRepository, llm_client: ILLMClient, clock=utc_now):
        self._items = items
        self._llm = llm_client
        self._clock = clock

    async def classify(self, item: CommandCenterItem) -> CommandCenterClassification:
        """
        Ask the LLM for a classification of one item.

        Raises:
            LLMException: If the call fails or the reply is not valid JSON
        """
        steps = "\n".join(f"- {s.title}" for s in item.workflow_steps)
        user_prompt = (
            f"Title: {item.title}\n"
            f"Description: {item.description or ''}\n"
            f"Steps:\n{steps or '- none'}"
        )
        messages = [
            {
                "role": "system",
                "content": REANALYSIS_SYSTEM_PROMPT.format(triggers=", ".join(COMMUNICATION_TYPE_TIERS)),
            },
            {"role": "user", "content": user_prompt},
        ]

        response = await self._llm.chat_completion(
            messages=messages,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            operation="command_center_reanalysis"
        )

        try:
            data = extract_json(response.content)
        except (json.JSONDecodeError, IndexError) as e:
            raise LLMException(f"Failed to parse classification response: {e}")
        if not isinstance(data, dict):
            raise LLMException("Classification response is not a JSON object")

        try:
            return CommandCenterClassification.model_validate(
                data.get("command_center_classification") or data
            )
        except ValidationError as e:
            raise LLMException(f"Malformed classification response: {e}")

    async def reanalyze(self, limit: Optional[int] = None) -> ReanalysisResult:
        result = ReanalysisResult()
        items = await self._items.list_by_trigger(
            NEEDS_AI_CLASSIFICATION,
            [ItemStatus.PENDING, ItemStatus.IN_PROGRESS],
            limit or settings.reanalysis_batch_size,
        )

        for item in items:
            result.processed += 1
            try:
                classification = await self.classify(item)
            except LLMException as e:
                logger.error(
                    "Item reanalysis failed",
                    extra={"item_id": item.id, "error": e.message}
                )
                result.errors.append(RecordError(source="item", record_id=item.id, message=e.message))
                continue

            if classification.tier is None:
                result.still_unclassified += 1
                continue

            self._apply(item, classification)
            await self._items.save(item)
            result.reclassified += 1

        logger.info("Reanalysis completed", extra=result.to_dict())
        return result

    def _apply(self, item: CommandCenterItem, classification: CommandCenterClassification) -> None:
        now = self._clock()
        trigger = classification.tier_trigger
        if trigger in COMMUNICATION_TYPE_TIERS:
            item.tier_trigger = trigger
            classify_item(item, now=now).apply_to(item)
            if classification.why_now:
                item.why_now = classification.why_now
        else:
            item.tier = classification.tier
            item.tier_trigger = trigger or "ai_classified"
            item.why_now = classification.why_now
            if classification.sla_minutes:
                item.sla_minutes = classification.sla_minutes
        item.updated_at = now


# ========== Feed ==========

@dataclass
class FeedTier:
    tier: int
    name: str
    items: List[CommandCenterItem]


@dataclass
class Feed:
    user_id: str
    generated_at: datetime
    tiers: List[FeedTier]

    @property
    def total(self) -> int:
        return sum(len(t.items) for t in self.tiers)


class CommandCenterService:
    """Feed, item status changes and on-demand scoring."""

    def __init__(self, items: ICommandCenterRepository, clock=utc_now):
        self._items = items
        self._clock = clock

    async def get_feed(self, user_id: str, now: Optional[datetime] = None) -> Feed:
        """Active items grouped by tier (1 first) and ordered within each tier."""
        now = now or self._clock()
        candidates = await self._items.list_for_user(
            user_id,
            [ItemStatus.PENDING, ItemStatus.IN_PROGRESS, ItemStatus.SNOOZED],
        )
        active = [item for item in candidates if item.is_active(now)]
        grouped = group_by_tier(active, now)
        return Feed(
            user_id=user_id,
            generated_at=now,
            tiers=[FeedTier(tier=t, name=TIER_NAMES.get(t, f"TIER {t}"), items=items) for t, items in grouped.items()],
        )

    async def get_item(self, item_id: str) -> CommandCenterItem:
        item = await self._items.get(item_id)
        if item is None:
            raise ResourceNotFoundException("Command center item", item_id)
        return item

    async def update_status(
        self,
        item_id: str,
        status: str,
        snoozed_until: Optional[datetime] = None,
        dismissed_reason: Optional[str] = None
    ) -> CommandCenterItem:
        item = await self.get_item(item_id)
        previous = item.status
        item.transition(status, self._clock(), snoozed_until=snoozed_until, dismissed_reason=dismissed_reason)
        await self._items.save(item)

        logger.info(
            "Item status changed",
            extra={"item_id": item_id, "from_status": previous, "to_status": item.status}
        )
        return item

    async def score_item(self, item_id: str, context: Optional[ScoringContext] = None) -> MomentumScore:
        """Recompute and store the momentum score of one item."""
        item = await self.get_item(item_id)
        now = self._clock()
        score = calculate_momentum_score(item, context, now)
        item.momentum_score = score.score
        item.score_explanation = score.explanation
        item.updated_at = now
        await self._items.save(item)
        return score


# ========== Attention Flags ==========

class AttentionFlagService:

    def __init__(self, flags: IAttentionFlagRepository, clock=utc_now):
        self._flags = flags
        self._clock = clock

    async def raise_flag(
        self,
        company_id: str,
        flag_type: str,
        reason: str,
        severity: Optional[str] = None,
        source_type: str = FlagSourceType.SYSTEM,
        source_id: Optional[str] = None,
        company_product_id: Optional[str] = None,
        recommended_action: Optional[str] = None,
        owner: str = FlagOwner.HUMAN
    ) -> AttentionFlag:
        now = self._clock()
        flag = AttentionFlag(
            company_id=company_id,
            flag_type=flag_type,
            reason=reason,
            severity=severity,
            source_type=source_type,
            source_id=source_id,
            company_product_id=company_product_id,
            recommended_action=recommended_action,
            owner=owner,
            created_at=now,
            updated_at=now,
        )
        await self._flags.add(flag)
        logger.info(
            "Attention flag raised",
            extra={"flag_id": flag.id, "company_id": company_id, "flag_type": flag_type, "severity": flag.severity}
        )
        return flag

    async def get(self, flag_id: str) -> AttentionFlag:
        flag = await self._flags.get(flag_id)
        if flag is None:
            raise ResourceNotFoundException("Attention flag", flag_id)
        return flag

    async def list_flags(
        self,
        company_id: Optional[str] = None,
        include_inactive: bool = False,
        now: Optional[datetime] = None
    ) -> List[AttentionFlag]:
        """Flags ordered by severity (critical first), then oldest first."""
        now = now or self._clock()
        flags = await self._flags.list(company_id=company_id)
        if not include_inactive:
            flags = [f for f in flags if f.is_active(now)]
        return sorted(flags, key=lambda f: (SEVERITY_ORDER.get(f.severity, 99), f.created_at))

    async def snooze(self, flag_id: str, until: datetime) -> AttentionFlag:
        flag = await self.get(flag_id)
        flag.snooze(until, self._clock())
        await self._flags.save(flag)
        return flag

    async def resolve(self, flag_id: str) -> AttentionFlag:
        flag = await self.get(flag_id)
        flag.resolve(self._clock())
        await self._flags.save(flag)
        logger.info("Attention flag resolved", extra={"flag_id": flag_id})
        return flag

    async def reopen(self, flag_id: str) -> AttentionFlag:
        flag = await self.get(flag_id)
        flag.reopen(self._clock())
        await self._flags.save(flag)
        return flag
