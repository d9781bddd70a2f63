from datetime import timedelta

import pytest

from momentum.command_center.domain import (
    CommandCenterItem,
    EngagementSignals,
    RiskSignals,
    ScoringContext,
    calculate_momentum_score,
)
from momentum.command_center.domain.scoring import (
    engagement_score,
    orphan_penalty,
    risk_score,
    time_pressure,
    value_score,
)

from conftest import NOW


def test_orphan_penalties():
    assert orphan_penalty(None, None, None).value == -50
    assert orphan_penalty(None, "co-1", None).value == -30
    assert orphan_penalty("d-1", "co-1", 0).value == -25
    assert orphan_penalty("d-1", "co-1", 5000).value == 0


@pytest.mark.parametrize("offset, expected", [
    (timedelta(hours=1), 20),
    (timedelta(hours=5), 12),
    (timedelta(hours=12), 8),
    (timedelta(days=3), 2),
    (timedelta(days=10), 0),
    (-timedelta(days=2), 17),
    (-timedelta(days=10), 13),
    (-timedelta(days=90), -2),
])
def test_time_pressure(offset, expected):
    assert time_pressure(NOW + offset, NOW).value == expected


def test_no_due_date_has_no_time_pressure():
    assert time_pressure(None, NOW).value == 0


def test_value_score_weights_by_probability():
    factor = value_score(30000, None, 30000)
    assert factor.value == 5
    assert factor.explanation == "$15K weighted value -> +5"
    assert value_score(10_000_000, 1.0, 30000).value == 20
    assert value_score(None, 0.9, 30000).value == 0


def test_engagement_is_capped():
    signals = EngagementSignals(
        proposal_viewed_at=NOW - timedelta(minutes=10),
        forwarded_internally_at=NOW - timedelta(hours=1),
        email_open_count=4,
    )
    factor = engagement_score(signals, NOW)
    assert factor.value == 20
    assert factor.signals == ["proposal_viewed", "forwarded_internally", "email_opened"]


def test_risk_signals():
    factor = risk_score(RiskSignals(stale_days=10, competitor_mentioned=True))
    assert factor.value == 16
    assert factor.signals == ["stale_deal", "competitor_mentioned"]


def test_orphan_item_clamps_to_one():
    item = CommandCenterItem(user_id="u-1", title="Research", action_type="task_simple")

    score = calculate_momentum_score(item, now=NOW)

    assert score.score == 1
    assert score.factors["orphan"].value == -50
    assert "No company or deal -> -50 (dismiss or link)" in score.explanation


def test_everything_at_once_clamps_to_hundred():
    item = CommandCenterItem(
        user_id="u-1",
        title="Send contract",
        company_id="co-1",
        deal_id="d-1",
        deal_value=60000,
        deal_probability=1.0,
        due_at=NOW + timedelta(hours=1),
    )
    context = ScoringContext(
        signal_type="commitment_made",
        engagement=EngagementSignals(
            proposal_viewed_at=NOW - timedelta(minutes=10),
            forwarded_internally_at=NOW - timedelta(hours=1),
        ),
        risk=RiskSignals(stale_days=20, competitor_mentioned=True, champion_going_dark=True),
        avg_deal_size=30000,
    )

    score = calculate_momentum_score(item, context, now=NOW)

    assert score.score == 100
    assert score.factors["base"].value == 35
    assert score.factors["risk"].value == 30
    assert score.to_dict()["factors"]["value"]["value"] == 20


def test_linked_item_without_signals():
    item = CommandCenterItem(
        user_id="u-1",
        title="Reply",
        action_type="email_respond",
        company_id="co-1",
        deal_id="d-1",
        deal_value=30000,
        deal_probability=0.5,
    )
    assert calculate_momentum_score(item, ScoringContext(avg_deal_size=30000), now=NOW).score == 25
