"""
Momentum Scoring
================

    MS = B + T + V + E + R + O, clamped to [1, 100]

B  base priority by signal or action type (default 10)
T  time pressure from due_at (-10 .. 20)
V  probability-weighted deal value against the average deal size (0 .. 20)
E  recent buyer engagement (0 .. 20)
R  deal risk signals (0 .. 30)
O  orphan penalty for items without company/deal context (-50 .. 0)

Tier 5 items are ordered by this score.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from momentum.command_center.domain.entities import CommandCenterItem
from momentum.command_center.domain.tiers import format_currency, js_round
from momentum.config import settings
from momentum.shared.timeutils import utc_now

BASE_PRIORITIES: Dict[str, int] = {
    "commitment_made": 35,
    "buying_signal": 32,
    "executive_engaged": 30,
    "meeting_follow_up": 28,
    "proposal_follow_up": 28,
    "sla_breach": 25,
    "competitor_mentioned": 25,
    "meeting_prep": 22,
    "email_respond": 20,
    "call_with_prep": 18,
    "call": 18,
    "email_send_draft": 15,
    "email_compose": 15,
    "linkedin_touch": 12,
    "research_account": 10,
    "task_simple": 10,
    "task_complex": 12,
    "internal_sync": 8,
}

DEFAULT_BASE_PRIORITY = 10


@dataclass
class ScoreFactor:
    value: int
    explanation: str = ""
    signals: List[str] = field(default_factory=list)


@dataclass
class EngagementSignals:
    proposal_viewed_at: Optional[datetime] = None
    email_open_count: int = 0
    link_clicked_at: Optional[datetime] = None
    forwarded_internally_at: Optional[datetime] = None
    replied_quickly: bool = False
    meeting_accepted_at: Optional[datetime] = None


@dataclass
class RiskSignals:
    stale_days: int = 0
    stuck_stage_days: int = 0
    competitor_mentioned: bool = False
    champion_going_dark: bool = False
    health_score_drop: float = 0
    ghosting_risk: bool = False
    multi_thread_missing: bool = False


@dataclass
class ScoringContext:
    signal_type: Optional[str] = None
    engagement: Optional[EngagementSignals] = None
    risk: Optional[RiskSignals] = None
    avg_deal_size: Optional[float] = None


@dataclass
class MomentumScore:
    score: int
    factors: Dict[str, ScoreFactor]
    explanation: List[str]

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "factors": {
                name: {"value": f.value, "explanation": f.explanation, "signals": f.signals}
                for name, f in self.factors.items()
            },
            "explanation": self.explanation,
        }


def _title(key: str) -> str:
    return key.replace("_", " ").title()


def _format_hours(hours: float) -> str:
    if hours < 1:
        return f"{js_round(hours * 60)} min"
    if hours < 24:
        return f"{js_round(hours)} hrs"
    return f"{js_round(hours / 24)} days"


def _minutes_ago(at: datetime, now: datetime) -> int:
    return js_round((now - at).total_seconds() / 60)


def _hours_ago(at: datetime, now: datetime) -> int:
    return js_round((now - at).total_seconds() / 3600)


# ========== Components ==========

def base_priority(action_type: str, signal_type: Optional[str] = None) -> ScoreFactor:
    if signal_type and BASE_PRIORITIES.get(signal_type):
        value = BASE_PRIORITIES[signal_type]
        return ScoreFactor(value, f"{_title(signal_type)} -> +{value}")
    value = BASE_PRIORITIES.get(action_type) or DEFAULT_BASE_PRIORITY
    return ScoreFactor(value, f"{_title(action_type)} -> +{value}")


def time_pressure(due_at: Optional[datetime], now: datetime) -> ScoreFactor:
    """Fresh urgency scores high; items overdue for a month or more lose points."""
    if due_at is None:
        return ScoreFactor(0)

    hours_until = (due_at - now).total_seconds() / 3600

    if hours_until < 0:
        overdue_days = abs(hours_until) / 24
        if overdue_days >= 30:
            penalty = min(10, js_round((overdue_days - 30) / 30))
            return ScoreFactor(-penalty, f"Stale ({js_round(overdue_days)}d old) -> -{penalty}")
        if overdue_days >= 7:
            value = max(5, 15 - js_round((overdue_days - 7) * 0.5))
            return ScoreFactor(value, f"Overdue {js_round(overdue_days)}d -> +{value}")
        value = min(20, 15 + js_round(overdue_days))
        return ScoreFactor(value, f"Overdue {js_round(overdue_days)}d -> +{value}")

    if hours_until <= 2:
        return ScoreFactor(20, f"Due in {_format_hours(hours_until)} -> +20")
    if hours_until <= 8:
        value = js_round(18 - (hours_until - 2) * 2)
        return ScoreFactor(value, f"Due in {_format_hours(hours_until)} -> +{value}")
    if hours_until <= 24:
        value = max(2, js_round(10 - (hours_until - 8) * 0.5))
        return ScoreFactor(value, f"Due today -> +{value}")
    if hours_until <= 168:
        days = math.ceil(hours_until / 24)
        value = max(0, 5 - days)
        if value > 0:
            return ScoreFactor(value, f"Due in {days} days -> +{value}")
    return ScoreFactor(0)


def value_score(
    deal_value: Optional[float],
    probability: Optional[float],
    avg_deal_size: float
) -> ScoreFactor:
    if not deal_value or deal_value <= 0:
        return ScoreFactor(0)
    prob = probability if probability is not None else 0.5
    weighted = deal_value * prob
    value = min(20, js_round(weighted / avg_deal_size * 10))
    return ScoreFactor(value, f"{format_currency(weighted)} weighted value -> +{value}")


def engagement_score(signals: Optional[EngagementSignals], now: datetime) -> ScoreFactor:
    if signals is None:
        return ScoreFactor(0, "No recent signals")

    score = 0
    parts: List[str] = []
    found: List[str] = []

    if signals.proposal_viewed_at is not None:
        minutes = _minutes_ago(signals.proposal_viewed_at, now)
        if minutes <= 60:
            pts = 12 if minutes <= 15 else 10 if minutes <= 30 else 8
            score += pts
            parts.append(f"Proposal viewed {minutes}m ago -> +{pts}")
            found.append("proposal_viewed")

    if signals.forwarded_internally_at is not None and _hours_ago(signals.forwarded_internally_at, now) <= 48:
        score += 10
        parts.append("Forwarded internally -> +10")
        found.append("forwarded_internally")

    if signals.email_open_count >= 3:
        score += 5
        parts.append(f"Email opened {signals.email_open_count}x -> +5")
        found.append("email_opened")

    if signals.link_clicked_at is not None and _minutes_ago(signals.link_clicked_at, now) <= 120:
        score += 4
        parts.append("Link clicked -> +4")
        found.append("link_clicked")

    if signals.replied_quickly:
        score += 3
        parts.append("Fast responder -> +3")
        found.append("replied_quickly")

    if signals.meeting_accepted_at is not None and _hours_ago(signals.meeting_accepted_at, now) <= 24:
        score += 5
        parts.append("Meeting accepted -> +5")
        found.append("meeting_accepted")

    return ScoreFactor(min(20, score), ", ".join(parts) or "No recent signals", found)


def risk_score(signals: Optional[RiskSignals]) -> ScoreFactor:
    if signals is None:
        return ScoreFactor(0)

    score = 0
    parts: List[str] = []
    found: List[str] = []

    if signals.stale_days > 5:
        pts = min(12, js_round(signals.stale_days * 0.8))
        score += pts
        parts.append(f"No activity for {signals.stale_days}d -> +{pts}")
        found.append("stale_deal")

    if signals.stuck_stage_days > 14:
        pts = min(10, js_round((signals.stuck_stage_days - 14) * 0.5))
        if pts > 0:
            score += pts
            parts.append(f"Stuck in stage {signals.stuck_stage_days}d -> +{pts}")
            found.append("stuck_stage")

    if signals.competitor_mentioned:
        score += 8
        parts.append("Competitor mentioned -> +8")
        found.append("competitor_mentioned")

    if signals.champion_going_dark:
        score += 10
        parts.append("Champion going dark -> +10")
        found.append("champion_going_dark")

    if signals.health_score_drop > 10:
        pts = min(8, js_round(signals.health_score_drop * 0.4))
        score += pts
        parts.append(f"Health dropped {signals.health_score_drop:g}% -> +{pts}")
        found.append("health_score_drop")

    if signals.ghosting_risk:
        score += 6
        parts.append("Ghosting risk -> +6")
        found.append("ghosting_risk")

    if signals.multi_thread_missing:
        score += 5
        parts.append("Single-threaded -> +5")
        found.append("multi_thread_missing")

    return ScoreFactor(min(30, score), ", ".join(parts), found)


def orphan_penalty(
    deal_id: Optional[str],
    company_id: Optional[str],
    deal_value: Optional[float]
) -> ScoreFactor:
    if not deal_id and not company_id:
        return ScoreFactor(-50, "No company or deal -> -50 (dismiss or link)")
    if not deal_id:
        return ScoreFactor(-30, "No deal (not pipeline work) -> -30")
    if not deal_value or deal_value <= 0:
        return ScoreFactor(-25, "$0 deal (add value or close it) -> -25")
    return ScoreFactor(0)


# ========== Total ==========

def calculate_momentum_score(
    item: CommandCenterItem,
    context: Optional[ScoringContext] = None,
    now: Optional[datetime] = None
) -> MomentumScore:
    ctx = context or ScoringContext()
    now = now or utc_now()

    factors = {
        "base": base_priority(item.action_type, ctx.signal_type),
        "time": time_pressure(item.due_at, now),
        "value": value_score(item.deal_value, item.deal_probability, ctx.avg_deal_size or settings.avg_deal_size),
        "engagement": engagement_score(ctx.engagement, now),
        "risk": risk_score(ctx.risk),
        "orphan": orphan_penalty(item.deal_id, item.company_id, item.deal_value),
    }
    raw = sum(f.value for f in factors.values())
    score = max(1, min(100, raw))

    explanation: List[str] = []
    if factors["base"].value > 0:
        explanation.append(factors["base"].explanation)
    if factors["time"].value != 0:
        explanation.append(factors["time"].explanation)
    if factors["value"].value > 0:
        explanation.append(factors["value"].explanation)
    for name in ("engagement", "risk"):
        if factors[name].value > 0 and factors[name].signals:
            explanation.append(factors[name].explanation)
    if factors["orphan"].value < 0:
        explanation.append(factors["orphan"].explanation)

    return MomentumScore(score=score, factors=factors, explanation=explanation)
