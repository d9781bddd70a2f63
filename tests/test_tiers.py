from datetime import datetime, timedelta, timezone

import pytest

from momentum.command_center.domain import (
    ClassificationContext,
    CommandCenterItem,
    EmailAnalysis,
    NEEDS_AI_CLASSIFICATION,
    classify_item,
    group_by_tier,
    parse_transcript_analysis,
    tier_for_transcript,
    tier_from_ai_analysis,
)
from momentum.command_center.domain.tiers import (
    CommitmentContext,
    DealContext,
    format_currency,
    format_duration,
    overdue_text,
    parse_promise_date,
    sla_status,
)
from momentum.config import ActionType, ItemSource, TierSlaStatus

from conftest import NOW


def item(**kwargs) -> CommandCenterItem:
    kwargs.setdefault("user_id", "u-1")
    kwargs.setdefault("title", "Something to do")
    kwargs.setdefault("created_at", NOW)
    return CommandCenterItem(**kwargs)


class TestAITier:

    def test_classified_tier_is_used(self):
        analysis = EmailAnalysis(command_center_classification={"tier": 2, "why_now": "Competitor in play"})
        assignment = tier_from_ai_analysis(analysis, "competitive_risk")

        assert assignment.tier == 2
        assert assignment.tier_trigger == "competitive_risk"
        assert assignment.why_now == "Competitor in play"
        assert not assignment.needs_reanalysis

    def test_missing_classification_parks_in_tier_5(self):
        analysis = EmailAnalysis(
            required_actions=[{"action": "URGENT: reply about the demo ASAP"}],
            communication_type="demo_request",
        )
        assignment = tier_from_ai_analysis(analysis, "demo_request")

        assert assignment.tier == 5
        assert assignment.tier_trigger == NEEDS_AI_CLASSIFICATION
        assert assignment.needs_reanalysis

    def test_transcript_with_our_commitments_is_tier_3(self):
        analysis = parse_transcript_analysis({
            "actionItems": [{"task": "Send recap", "owner": "us"}],
            "ourCommitments": [{"commitment": "Share pricing"}],
        })
        assignment = tier_for_transcript(analysis, analysis.all_actions())

        assert assignment.tier == 3
        assert assignment.tier_trigger == "meeting_commitment"
        assert assignment.why_now == "2 commitment(s) from your call"

    def test_transcript_without_commitments(self):
        analysis = parse_transcript_analysis({"actionItems": [{"task": "They send logo", "owner": "them"}]})
        assert tier_for_transcript(analysis, analysis.all_actions()).tier_trigger == "meeting_follow_up"

        empty = parse_transcript_analysis({})
        assert tier_for_transcript(empty, []) == (5, "general_meeting", None, False)


class TestClassifyItem:

    def test_playbook_trigger_with_breached_sla(self):
        result = classify_item(
            item(tier_trigger="demo_request", received_at=NOW - timedelta(minutes=20)),
            now=NOW,
        )
        assert result.tier == 1
        assert result.sla_minutes == 15
        assert result.sla_status == TierSlaStatus.BREACHED
        assert result.why_now == "Demo request received 20 min ago."

    def test_playbook_trigger_in_warning(self):
        result = classify_item(
            item(tier_trigger="pricing_request", received_at=NOW - timedelta(minutes=100)),
            now=NOW,
        )
        assert result.sla_status == TierSlaStatus.WARNING
        assert result.why_now == "Pricing inquiry received 1h ago."

    def test_form_submission_source_fallback(self):
        result = classify_item(item(source=ItemSource.FORM_SUBMISSION), now=NOW + timedelta(minutes=5))
        assert result.tier == 1
        assert result.trigger == "form_submission"
        assert result.sla_status == TierSlaStatus.ON_TRACK

    def test_close_date_within_a_week(self):
        context = ClassificationContext(deal=DealContext(id="d-1", expected_close_date=NOW + timedelta(days=5)))
        result = classify_item(item(), context, now=NOW)

        assert result.tier == 2
        assert result.trigger == "deadline_critical"
        assert result.urgency_score == 30
        assert result.why_now == "Close date is Jan 11 - 5 days left."

    def test_competitor_on_deal(self):
        context = ClassificationContext(deal=DealContext(id="d-1", competitors=["Rival Co"]))
        result = classify_item(item(), context, now=NOW)
        assert result.trigger == "competitive_risk"
        assert "Rival Co" in result.why_now

    def test_transcript_commitment_overdue(self):
        context = ClassificationContext(commitment=CommitmentContext(
            commitment="Send proposal",
            when="tomorrow",
            meeting_date=NOW - timedelta(days=3),
        ))
        result = classify_item(item(source=ItemSource.TRANSCRIPTION), context, now=NOW)

        assert result.tier == 3
        assert result.promise_date == NOW - timedelta(days=2)
        assert result.why_now == 'You said "Send proposal" - 2 days overdue.'

    def test_meeting_follow_up_after_four_hours(self):
        context = ClassificationContext(meeting_ended_hours_ago=5)
        result = classify_item(
            item(source=ItemSource.CALENDAR_SYNC, action_type=ActionType.MEETING_FOLLOW_UP),
            context,
            now=NOW,
        )
        assert result.trigger == "meeting_follow_up"
        assert result.why_now == "Call ended 5 hours ago. They expect follow-up."

    def test_high_value_deal(self):
        context = ClassificationContext(deal=DealContext(
            id="d-1", value=250000, value_percentile=85, days_since_activity=3,
        ))
        result = classify_item(item(), context, now=NOW)

        assert result.tier == 4
        assert result.trigger == "high_value"
        assert result.value_score == 30
        assert result.why_now == "$250K opportunity worth attention."

    def test_closed_deal_is_not_tier_4(self):
        context = ClassificationContext(deal=DealContext(id="d-1", value_percentile=95, stage="closed_won"))
        assert classify_item(item(), context, now=NOW).tier == 5

    def test_nothing_matches(self):
        result = classify_item(item(), now=NOW)
        assert (result.tier, result.trigger) == (5, "research_needed")


@pytest.mark.parametrize("waiting, target, expected", [
    (0, 15, TierSlaStatus.ON_TRACK),
    (11, 15, TierSlaStatus.ON_TRACK),
    (12, 15, TierSlaStatus.WARNING),
    (15, 15, TierSlaStatus.BREACHED),
    (500, 0, TierSlaStatus.BREACHED),
])
def test_sla_status(waiting, target, expected):
    assert sla_status(waiting, target) == expected


@pytest.mark.parametrize("minutes, text", [(0, "just now"), (59, "59 min"), (60, "1h"), (1500, "1d")])
def test_format_duration(minutes, text):
    assert format_duration(minutes) == text


@pytest.mark.parametrize("value, text", [
    (1_500_000, "$1.5M"),
    (2500, "$3K"),
    (999, "$999"),
    (12.5, "$12.5"),
])
def test_format_currency(value, text):
    assert format_currency(value) == text


class TestPromiseDates:

    def test_relative_phrases(self):
        assert parse_promise_date("tomorrow", NOW) == NOW + timedelta(days=1)
        assert parse_promise_date("by end of week", NOW) == datetime(2026, 1, 9, 15, 0, tzinfo=timezone.utc)
        assert parse_promise_date("next week", NOW) == NOW + timedelta(days=7)
        assert parse_promise_date("end of month", NOW) == datetime(2026, 1, 31, 15, 0, tzinfo=timezone.utc)
        assert parse_promise_date("at some point", NOW) is None
        assert parse_promise_date(None, NOW) is None

    def test_end_of_week_on_a_friday_is_next_friday(self):
        friday = datetime(2026, 1, 9, 10, 0, tzinfo=timezone.utc)
        assert parse_promise_date("EOW", friday) == friday + timedelta(days=7)

    def test_relative_to_now_without_meeting(self):
        assert parse_promise_date("today", now=NOW) == NOW

    def test_explicit_local_time_uses_timezone(self):
        promise = parse_promise_date("2026-01-08T10:00:00", tz="America/New_York")
        assert promise == datetime(2026, 1, 8, 15, 0, tzinfo=timezone.utc)

    def test_explicit_offset_is_kept(self):
        promise = parse_promise_date("2026-01-08T10:00:00Z", tz="America/New_York")
        assert promise == datetime(2026, 1, 8, 10, 0, tzinfo=timezone.utc)

    def test_overdue_text(self):
        assert overdue_text(NOW + timedelta(days=2), NOW) == "due in 2 days"
        assert overdue_text(NOW, NOW) == "due today"
        assert overdue_text(NOW - timedelta(days=1), NOW) == "1 day overdue"
        assert overdue_text(NOW - timedelta(days=4, hours=3), NOW) == "4 days overdue"


def test_group_by_tier_orders_each_bucket():
    fresh = item(title="fresh", tier=1, sla_status=TierSlaStatus.ON_TRACK, received_at=NOW)
    late = item(title="late", tier=1, sla_status=TierSlaStatus.BREACHED, received_at=NOW - timedelta(hours=5))
    low = item(title="low", tier=5, momentum_score=10)
    high = item(title="high", tier=5, momentum_score=80)
    promise_soon = item(title="soon", tier=3, promise_date=NOW + timedelta(days=1))
    promise_late = item(title="late promise", tier=3, promise_date=NOW - timedelta(days=3))

    groups = group_by_tier([fresh, low, late, high, promise_soon, promise_late], now=NOW)

    assert list(groups) == [1, 2, 3, 4, 5]
    assert [i.title for i in groups[1]] == ["late", "fresh"]
    assert groups[2] == []
    assert [i.title for i in groups[3]] == ["late promise", "soon"]
    assert [i.title for i in groups[5]] == ["high", "low"]
