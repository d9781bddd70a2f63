"""
Tier Classification
===================

The five tiers, in strict hierarchy:

1. RESPOND NOW      - someone is waiting (minutes matter)
2. DON'T LOSE THIS  - deadline or competition (hours matter)
3. KEEP YOUR WORD   - you promised something (same day)
4. MOVE BIG DEALS   - high value, needs attention (this week)
5. BUILD PIPELINE   - important but not urgent

The tier of an analyzed communication comes only from the AI's
communication type, looked up in the playbook below. Item text is never
scanned for keywords; items without an AI tier are parked in tier 5 as
`needs_ai_classification` until they are re-analyzed.
"""

import calendar
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Union

from momentum.config import ActionType, ItemSource, TierSlaStatus
from momentum.command_center.domain.analysis import (
    EmailAnalysis,
    LegacyEmailAnalysis,
    TranscriptAnalysis,
    TranscriptActionItem,
)
from momentum.command_center.domain.entities import CommandCenterItem
from momentum.scheduling.timezone import normalize_ai_timestamp
from momentum.shared.timeutils import ensure_utc, parse_datetime, utc_now

NEEDS_AI_CLASSIFICATION = "needs_ai_classification"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}")

TIER_NAMES: Dict[int, str] = {
    1: "RESPOND NOW",
    2: "DON'T LOSE THIS",
    3: "KEEP YOUR WORD",
    4: "MOVE BIG DEALS",
    5: "BUILD PIPELINE",
}


class PlaybookEntry(NamedTuple):
    tier: int
    sla_minutes: int
    why_now_template: str


# ========== Sales Playbook: communication type -> tier ==========

COMMUNICATION_TYPE_TIERS: Dict[str, PlaybookEntry] = {
    # Tier 1: RESPOND NOW
    "demo_request": PlaybookEntry(1, 15, "Demo request received {duration} ago."),
    "free_trial_form": PlaybookEntry(1, 15, "Signed trial form received {duration} ago - ready to start."),
    "pricing_request": PlaybookEntry(1, 120, "Pricing inquiry received {duration} ago."),
    "meeting_request": PlaybookEntry(1, 60, "Meeting request waiting {duration}."),
    "direct_question": PlaybookEntry(1, 240, "Question awaiting response for {duration}."),
    "email_reply": PlaybookEntry(1, 240, "They replied {duration} ago. Keep momentum."),
    "email_needs_response": PlaybookEntry(1, 240, "Email needs response - waiting {duration}."),
    "email_unanswered": PlaybookEntry(1, 240, "Unanswered email for {duration}."),
    "inbound_request": PlaybookEntry(1, 60, "Inbound request waiting {duration}."),
    "form_submission": PlaybookEntry(1, 15, "Form submitted {duration} ago."),
    "calendly_booking": PlaybookEntry(1, 15, "New booking {duration} ago."),
    "ready_to_proceed": PlaybookEntry(1, 30, 'They said "ready to proceed" {duration} ago. Act now.'),
    "unknown_sender": PlaybookEntry(1, 60, "New inbound from unknown sender {duration} ago - triage needed."),
    "trial_request": PlaybookEntry(1, 15, "Trial request received {duration} ago - ready to start."),
    "pricing_inquiry": PlaybookEntry(1, 120, "Pricing inquiry received {duration} ago."),
    "demo_inquiry": PlaybookEntry(1, 15, "Demo inquiry received {duration} ago."),
    "inbound_lead": PlaybookEntry(1, 60, "New inbound lead {duration} ago."),

    # Tier 2: DON'T LOSE THIS
    "deadline_critical": PlaybookEntry(2, 480, "Close date within 7 days."),
    "deadline_approaching": PlaybookEntry(2, 1440, "Close date within 14 days."),
    "competitive_risk": PlaybookEntry(2, 480, "Competitor mentioned - you're in a race."),
    "buying_signal": PlaybookEntry(2, 240, "Strong buying signal detected."),
    "budget_discussed": PlaybookEntry(2, 480, "Budget discussion happened - momentum is high."),
    "proposal_hot": PlaybookEntry(2, 240, "Proposal viewed multiple times recently."),
    "champion_dark": PlaybookEntry(2, 1440, "Champion hasn't replied - your inside access is at risk."),
    "going_stale": PlaybookEntry(2, 1440, "Deal going quiet - re-engage now."),
    "urgency_signal": PlaybookEntry(2, 480, "Urgency signals detected by AI."),
    "objection_raised": PlaybookEntry(2, 480, "Objection raised - address quickly."),
    "technical_question": PlaybookEntry(2, 480, "Technical question needs answer."),
    "objection": PlaybookEntry(2, 480, "Objection raised - address quickly."),
    "competitor": PlaybookEntry(2, 480, "Competitor mentioned - you're in a race."),
    "risk_signal": PlaybookEntry(2, 480, "Deal risk detected."),

    # Tier 3: KEEP YOUR WORD
    "transcript_commitment": PlaybookEntry(3, 1440, "You committed to this in the call."),
    "meeting_follow_up": PlaybookEntry(3, 480, "Meeting ended - follow-up expected."),
    "post_meeting_followup": PlaybookEntry(3, 480, "Post-meeting follow-up due."),
    "action_item_due": PlaybookEntry(3, 1440, "Action item due."),
    "promise_made": PlaybookEntry(3, 1440, "You promised this."),
    "promise_due": PlaybookEntry(3, 480, "Promise is due."),
    "our_commitment_overdue": PlaybookEntry(3, 0, "Your commitment is overdue."),
    "action_item": PlaybookEntry(3, 1440, "Action item needs attention."),
    "meeting_commitment": PlaybookEntry(3, 1440, "Commitment from meeting needs follow-through."),
    "follow_up": PlaybookEntry(3, 1440, "Follow-up promised."),
    "deliverable_promised": PlaybookEntry(3, 1440, "Deliverable was promised."),

    # Tier 4: MOVE BIG DEALS
    "high_value": PlaybookEntry(4, 2880, "High-value opportunity worth attention."),
    "strategic_account": PlaybookEntry(4, 2880, "Strategic account needs attention."),
    "csuite_contact": PlaybookEntry(4, 2880, "C-suite contact involved."),
    "deal_stale": PlaybookEntry(4, 2880, "Deal has gone quiet."),
    "big_deal_attention": PlaybookEntry(4, 2880, "Big deal needs proactive attention."),
    "concern_unresolved": PlaybookEntry(4, 1440, "Concern still unresolved."),
    "their_commitment_overdue": PlaybookEntry(4, 1440, "Their commitment is overdue - follow up."),
    "orphaned_opportunity": PlaybookEntry(4, 2880, "Engaged contact not linked to deal."),

    # Tier 5: BUILD PIPELINE
    "internal_request": PlaybookEntry(5, 4320, "Internal request."),
    "cold_lead_reengage": PlaybookEntry(5, 10080, "Cold lead worth re-engaging."),
    "new_contact_no_outreach": PlaybookEntry(5, 10080, "New contact - no outreach yet."),
    "research_needed": PlaybookEntry(5, 10080, "Research needed."),
    "follow_up_general": PlaybookEntry(5, 4320, "General follow-up."),
    "general": PlaybookEntry(5, 4320, "General communication - no urgency."),
    "informational": PlaybookEntry(5, 4320, "Informational - no action required."),
    "nurture": PlaybookEntry(5, 4320, "Nurture touch - build relationship."),
    NEEDS_AI_CLASSIFICATION: PlaybookEntry(5, 4320, "Needs review."),
    "new_introduction": PlaybookEntry(5, 1440, "New introduction - respond professionally."),
    "introduction": PlaybookEntry(5, 1440, "Introduction email - respond professionally."),
    "other": PlaybookEntry(5, 4320, "Review and respond as needed."),
}


def get_tier_for_trigger(trigger: Optional[str]) -> Optional[PlaybookEntry]:
    return COMMUNICATION_TYPE_TIERS.get(trigger) if trigger else None


# ========== Tier assignment from AI analysis ==========

class TierAssignment(NamedTuple):
    tier: int
    tier_trigger: str
    why_now: Optional[str]
    needs_reanalysis: bool = False


def tier_from_ai_analysis(
    analysis: Union[EmailAnalysis, LegacyEmailAnalysis],
    comm_type: str
) -> TierAssignment:
    """
    Tier from the AI classification only.

    Without a classified tier the item lands in tier 5 as
    needs_ai_classification, whatever else the analysis says.
    """
    classification = analysis.command_center_classification
    if classification is not None and classification.tier:
        return TierAssignment(
            tier=classification.tier,
            tier_trigger=classification.tier_trigger or comm_type,
            why_now=classification.why_now or None,
            needs_reanalysis=False,
        )
    return TierAssignment(5, NEEDS_AI_CLASSIFICATION, None, True)


def tier_for_transcript(
    analysis: TranscriptAnalysis,
    actions: Sequence[TranscriptActionItem]
) -> TierAssignment:
    """Meetings where we committed to something are tier 3; the rest tier 5."""
    commitments = len(analysis.our_commitments) + sum(
        1 for a in analysis.action_items if a.owner == "us"
    )
    if commitments > 0:
        return TierAssignment(3, "meeting_commitment", f"{commitments} commitment(s) from your call")
    if actions:
        return TierAssignment(5, "meeting_follow_up", None)
    return TierAssignment(5, "general_meeting", None)


# ========== Classification context ==========

@dataclass
class DealContext:
    id: str
    expected_close_date: Optional[Union[date, datetime, str]] = None
    competitors: List[str] = field(default_factory=list)
    days_since_activity: Optional[int] = None
    value: Optional[float] = None
    value_percentile: Optional[float] = None
    stage: Optional[str] = None


@dataclass
class ContactContext:
    id: str
    name: str
    role: Optional[str] = None
    title: Optional[str] = None
    emails_without_reply: int = 0
    days_since_reply: int = 0


@dataclass
class CommitmentContext:
    commitment: str
    when: Optional[str] = None
    meeting_date: Optional[datetime] = None
    meeting_title: Optional[str] = None


@dataclass
class ClassificationContext:
    deal: Optional[DealContext] = None
    champion: Optional[ContactContext] = None
    proposal_views_48h: int = 0
    commitment: Optional[CommitmentContext] = None
    meeting_ended_hours_ago: Optional[float] = None
    follow_up_sent: bool = False
    is_strategic_account: bool = False
    has_csuite_contact: bool = False


@dataclass
class TierResult:
    tier: int
    trigger: str
    why_now: Optional[str] = None
    sla_minutes: Optional[int] = None
    sla_status: Optional[str] = None
    urgency_score: int = 0
    value_score: int = 0
    promise_date: Optional[datetime] = None
    commitment_text: Optional[str] = None
    received_at: Optional[datetime] = None

    def apply_to(self, item: CommandCenterItem) -> None:
        item.tier = self.tier
        item.tier_trigger = self.trigger
        item.why_now = self.why_now
        item.sla_minutes = self.sla_minutes
        item.sla_status = self.sla_status
        item.urgency_score = self.urgency_score
        item.value_score = self.value_score
        item.promise_date = self.promise_date
        item.commitment_text = self.commitment_text
        if self.received_at is not None:
            item.received_at = self.received_at


# ========== Formatting helpers ==========

def js_round(value: float) -> int:
    """Half-up rounding (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def format_duration(minutes: int) -> str:
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} min"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def sla_status(minutes_waiting: int, sla_minutes: int) -> str:
    if minutes_waiting >= sla_minutes:
        return TierSlaStatus.BREACHED
    if minutes_waiting >= sla_minutes * 0.75:
        return TierSlaStatus.WARNING
    return TierSlaStatus.ON_TRACK


def format_currency(value: float) -> str:
    if value >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"
    if value >= 1000:
        return f"${js_round(value / 1000)}K"
    return f"${format_number(value)}"


def format_short_date(value: datetime) -> str:
    return f"{value:%b} {value.day}"


def is_csuite(title: Optional[str]) -> bool:
    if not title:
        return False
    lower = title.lower()
    markers = (
        "ceo", "cfo", "cto", "coo", "cmo", "cio", "chief", "president",
        "vp ", "vice president", "owner", "founder",
    )
    return any(m in lower for m in markers)


def _as_datetime(value: Union[date, datetime, str, None]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return parse_datetime(value)


def days_until(value: Union[date, datetime, str], now: datetime) -> int:
    target = _as_datetime(value)
    return math.ceil((target - now).total_seconds() / 86400)


def parse_promise_date(
    when: Optional[str],
    meeting_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
    tz: Optional[str] = None
) -> Optional[datetime]:
    """
    Resolve phrases like "tomorrow" or "end of week" against the meeting date.

    An explicit timestamp is taken as local time in tz unless it carries an offset.
    """
    if not when:
        return None
    if _ISO_DATE.match(when.strip()):
        return normalize_ai_timestamp(when.strip(), tz).utc
    lower = when.lower()
    base = ensure_utc(meeting_date) if meeting_date else (now or utc_now())

    if "today" in lower:
        return base
    if "tomorrow" in lower:
        return base + timedelta(days=1)
    if "end of week" in lower or "eow" in lower or "by friday" in lower:
        # Sunday=0 numbering, next Friday (a full week when base is Friday)
        js_day = (base.weekday() + 1) % 7
        return base + timedelta(days=(5 - js_day + 7) % 7 or 7)
    if "next week" in lower:
        return base + timedelta(days=7)
    if "in 2 weeks" in lower or "two weeks" in lower:
        return base + timedelta(days=14)
    if "end of month" in lower or "eom" in lower:
        last_day = calendar.monthrange(base.year, base.month)[1]
        return base.replace(day=last_day)
    return None


def overdue_text(promise_date: datetime, now: datetime) -> str:
    diff_days = math.floor((now - promise_date).total_seconds() / 86400)
    if diff_days < 0:
        return f"due in {abs(diff_days)} days"
    if diff_days == 0:
        return "due today"
    if diff_days == 1:
        return "1 day overdue"
    return f"{diff_days} days overdue"


def _minutes_waiting(since: datetime, now: datetime) -> int:
    return math.floor((now - since).total_seconds() / 60)


def _from_playbook(trigger: str, entry: PlaybookEntry, received_at: datetime, now: datetime) -> TierResult:
    waiting = _minutes_waiting(received_at, now)
    return TierResult(
        tier=entry.tier,
        trigger=trigger,
        sla_minutes=entry.sla_minutes,
        sla_status=sla_status(waiting, entry.sla_minutes),
        received_at=received_at,
        why_now=entry.why_now_template.replace("{duration}", format_duration(waiting)),
    )


# ========== Classification ==========

def classify_item(
    item: CommandCenterItem,
    context: Optional[ClassificationContext] = None,
    now: Optional[datetime] = None
) -> TierResult:
    """
    Classify an item into a tier.

    Order: playbook lookup by tier_trigger, source fallback for form and
    calendly items, then deal/commitment/value context (tiers 2, 3, 4),
    then tier 5 research_needed.
    """
    ctx = context or ClassificationContext()
    now = now or utc_now()

    entry = get_tier_for_trigger(item.tier_trigger)
    if entry is not None:
        return _from_playbook(item.tier_trigger, entry, item.received_at or item.created_at, now)

    if item.source in (ItemSource.FORM_SUBMISSION, ItemSource.CALENDLY):
        entry = COMMUNICATION_TYPE_TIERS.get(item.source)
        if entry is not None:
            return _from_playbook(item.source, entry, item.created_at, now)

    result = (
        detect_tier2(ctx, now)
        or detect_tier3(item, ctx, now)
        or detect_tier4(ctx)
    )
    if result is not None:
        return result
    return TierResult(tier=5, trigger="research_needed", why_now=None)


def detect_tier2(ctx: ClassificationContext, now: datetime) -> Optional[TierResult]:
    deal = ctx.deal
    if deal is None:
        return None

    urgency = 0
    trigger: Optional[str] = None
    why_now: Optional[str] = None

    close_date = _as_datetime(deal.expected_close_date)
    if close_date is not None:
        days = days_until(close_date, now)
        if 0 <= days <= 7:
            trigger = "deadline_critical"
            urgency += 30
            why_now = f"Close date is {format_short_date(close_date)} - {days} days left."
        elif 7 < days <= 14:
            trigger = "deadline_approaching"
            urgency += 20
            why_now = f"Close date is {format_short_date(close_date)} - {days} days out."

    if trigger is None and deal.competitors:
        trigger = "competitive_risk"
        urgency += 25
        why_now = f"They're evaluating {deal.competitors[0]}. You're in a race."

    if trigger is None and ctx.proposal_views_48h >= 3:
        trigger = "proposal_hot"
        urgency += 20
        why_now = f"They viewed your proposal {ctx.proposal_views_48h}x in 48 hours."

    champion = ctx.champion
    if (
        trigger is None
        and champion is not None
        and champion.emails_without_reply >= 2
        and champion.days_since_reply >= 7
    ):
        trigger = "champion_dark"
        urgency += 25
        why_now = (
            f"{champion.name} hasn't replied to {champion.emails_without_reply} emails. "
            "Your inside access is at risk."
        )

    if trigger is None:
        return None
    return TierResult(
        tier=2,
        trigger=trigger,
        urgency_score=urgency,
        sla_minutes=COMMUNICATION_TYPE_TIERS[trigger].sla_minutes,
        why_now=why_now,
    )


def detect_tier3(item: CommandCenterItem, ctx: ClassificationContext, now: datetime) -> Optional[TierResult]:
    commitment = ctx.commitment
    if item.source == ItemSource.TRANSCRIPTION and commitment is not None:
        promise = parse_promise_date(commitment.when, commitment.meeting_date, now)
        status = overdue_text(promise, now) if promise else "pending"
        return TierResult(
            tier=3,
            trigger="transcript_commitment",
            promise_date=promise,
            commitment_text=commitment.commitment,
            sla_minutes=COMMUNICATION_TYPE_TIERS["transcript_commitment"].sla_minutes,
            why_now=f'You said "{commitment.commitment}" - {status}.',
        )

    if (
        item.source == ItemSource.CALENDAR_SYNC
        and item.action_type == ActionType.MEETING_FOLLOW_UP
        and ctx.meeting_ended_hours_ago is not None
        and ctx.meeting_ended_hours_ago >= 4
        and not ctx.follow_up_sent
    ):
        return TierResult(
            tier=3,
            trigger="meeting_follow_up",
            promise_date=now + timedelta(hours=24),
            sla_minutes=COMMUNICATION_TYPE_TIERS["meeting_follow_up"].sla_minutes,
            why_now=(
                f"Call ended {format_number(ctx.meeting_ended_hours_ago)} hours ago. "
                "They expect follow-up."
            ),
        )
    return None


def detect_tier4(ctx: ClassificationContext) -> Optional[TierResult]:
    deal = ctx.deal
    if deal is None or deal.stage in ("closed_won", "closed_lost"):
        return None

    value_score = 0
    trigger: Optional[str] = None

    percentile = deal.value_percentile or 0
    if percentile >= 80:
        value_score += 30
        trigger = "high_value"
    elif percentile >= 60:
        value_score += 15

    if trigger is None and ctx.is_strategic_account:
        value_score += 20
        trigger = "strategic_account"

    if trigger is None and ctx.has_csuite_contact:
        value_score += 15
        trigger = "csuite_contact"

    stale_days = deal.days_since_activity or 0
    if trigger is None and stale_days >= 10:
        value_score += 10
        trigger = "deal_stale"

    if value_score < 15 or trigger is None:
        return None

    why_now: Optional[str] = None
    if stale_days >= 10:
        why_now = f"{format_currency(deal.value or 0)} deal silent for {stale_days} days."
    elif deal.value:
        why_now = f"{format_currency(deal.value)} opportunity worth attention."

    return TierResult(
        tier=4,
        trigger=trigger,
        value_score=value_score,
        sla_minutes=COMMUNICATION_TYPE_TIERS[trigger].sla_minutes,
        why_now=why_now,
    )


# ========== Within-tier ordering ==========

_SLA_ORDER = {TierSlaStatus.BREACHED: 0, TierSlaStatus.WARNING: 1, TierSlaStatus.ON_TRACK: 2}


def _timestamp(value: Optional[datetime]) -> float:
    return value.timestamp() if value else 0.0


def sort_tier1(items: Sequence[CommandCenterItem], now: Optional[datetime] = None) -> List[CommandCenterItem]:
    """SLA status (breached first), then most recently received."""
    return sorted(items, key=lambda i: (
        _SLA_ORDER.get(i.sla_status or TierSlaStatus.ON_TRACK, 2),
        -_timestamp(i.received_at or i.created_at),
    ))


def sort_tier2(items: Sequence[CommandCenterItem], now: Optional[datetime] = None) -> List[CommandCenterItem]:
    return sorted(items, key=lambda i: (-(i.urgency_score or 0), -(i.deal_value or 0)))


def sort_tier3(items: Sequence[CommandCenterItem], now: Optional[datetime] = None) -> List[CommandCenterItem]:
    """Most overdue promise first, then deal value."""
    now = now or utc_now()

    def overdue(item: CommandCenterItem) -> float:
        return (now - item.promise_date).total_seconds() if item.promise_date else 0.0

    return sorted(items, key=lambda i: (-overdue(i), -(i.deal_value or 0)))


def sort_tier4(items: Sequence[CommandCenterItem], now: Optional[datetime] = None) -> List[CommandCenterItem]:
    return sorted(items, key=lambda i: (-(i.value_score or 0), -(i.deal_value or 0)))


def sort_tier5(items: Sequence[CommandCenterItem], now: Optional[datetime] = None) -> List[CommandCenterItem]:
    return sorted(items, key=lambda i: -(i.momentum_score or 0))


TIER_SORTERS: Dict[int, Callable[..., List[CommandCenterItem]]] = {
    1: sort_tier1,
    2: sort_tier2,
    3: sort_tier3,
    4: sort_tier4,
    5: sort_tier5,
}


def group_by_tier(
    items: Sequence[CommandCenterItem],
    now: Optional[datetime] = None
) -> Dict[int, List[CommandCenterItem]]:
    """Bucket items by tier (1..5, all keys present) and order each bucket."""
    buckets: Dict[int, List[CommandCenterItem]] = {tier: [] for tier in TIER_NAMES}
    for item in items:
        buckets.setdefault(item.tier, []).append(item)
    return {tier: TIER_SORTERS[tier](bucket, now) for tier, bucket in sorted(buckets.items())}
