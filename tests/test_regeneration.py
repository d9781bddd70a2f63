from datetime import timedelta

import pytest

from momentum.command_center.application import ItemBuilder, RegenerationService, workflow_title
from momentum.command_center.domain import (
    CompanyRef,
    ContactRecord,
    EmailRecord,
    NEEDS_AI_CLASSIFICATION,
    TranscriptRecord,
    UserRecord,
    source_hash,
)
from momentum.command_center.infrastructure import InMemorySourceRepository
from momentum.config import ActionType, ItemSource
from momentum.core.exceptions import ConfigurationException

from conftest import NOW, FixedClock


def classified_email():
    return EmailRecord(
        id="e-1",
        subject="Pricing for 12 trucks",
        from_email="pat@acme.com",
        received_at=NOW - timedelta(hours=1),
        conversation_ref="conv-1",
        ai_analysis={
            "communication_type": "pricing_request",
            "summary": "Wants pricing for the fleet",
            "required_actions": [
                {"action": "Send pricing sheet", "owner": "sales_rep", "urgency": "high"},
                {"action": "Book a call", "urgency": "medium"},
            ],
            "command_center_classification": {
                "tier": 1,
                "tier_trigger": "pricing_request",
                "why_now": "Pricing asked an hour ago",
            },
        },
    )


def unclassified_email():
    return EmailRecord(
        id="e-2",
        from_email="someone@else.com",
        received_at=NOW - timedelta(hours=2),
        ai_analysis={
            "communication_type": "general",
            "required_actions": [{"action": "Reply with times", "reasoning": "They asked for availability"}],
        },
    )


def legacy_email():
    return EmailRecord(
        id="e-3",
        received_at=NOW - timedelta(hours=3),
        ai_analysis={
            "commitments_made": ["Send deck"],
            "questions_asked": ["Price?"],
            "summary": "Old format",
        },
    )


def malformed_email():
    return EmailRecord(
        id="e-4",
        received_at=NOW - timedelta(hours=4),
        ai_analysis={"required_actions": [{"owner": "sales_rep"}]},
    )


def empty_email():
    return EmailRecord(id="e-5", received_at=NOW - timedelta(hours=5), ai_analysis={"summary": "newsletter"})


def transcripts():
    return [
        TranscriptRecord(
            id="t-1",
            title="Acme Pest Control - onboarding",
            meeting_date=NOW - timedelta(days=1),
            analysis={
                "summary": "Kickoff call",
                "actionItems": [{"task": "Send recap", "owner": "us"}],
                "ourCommitments": [{"commitment": "Share rollout plan", "when": "tomorrow"}],
            },
        ),
        TranscriptRecord(id="t-2", title="Chat", meeting_date=NOW - timedelta(days=2), analysis={"summary": "chit chat"}),
    ]


@pytest.fixture
def sources():
    return InMemorySourceRepository(
        users=[UserRecord("u-0"), UserRecord("u-1", email="rep@ourco.com", auth_id="auth-1")],
        emails=[classified_email(), unclassified_email(), legacy_email(), malformed_email(), empty_email()],
        transcripts=transcripts(),
        contacts=[ContactRecord("c-1", email="pat@acme.com", name="Pat", company_id="co-1")],
        companies=[CompanyRef("co-1", "Acme"), CompanyRef("co-2", "Acme Pest Control")],
        deals=3,
    )


@pytest.fixture
def service(item_repo, sources, clock):
    return RegenerationService(item_repo, sources, ItemBuilder(clock))


def by_source(item_repo):
    return {item.email_id or item.meeting_id: item for item in item_repo.all()}


async def test_regenerate_builds_items(service, item_repo):
    result = await service.regenerate()

    assert result.emails_processed == 3
    assert result.transcripts_processed == 1
    assert result.items_created == 4
    assert result.items_needing_reanalysis == 2
    assert result.transcripts_linked_to_company == 1
    assert result.tier_counts == {1: 1, 2: 0, 3: 1, 4: 0, 5: 2}
    assert [(e.source, e.record_id) for e in result.errors] == [("email", "e-4")]
    assert result.final_active_count == 4


async def test_classified_email_becomes_workflow(service, item_repo):
    await service.regenerate()
    item = by_source(item_repo)["e-1"]

    assert item.user_id == "u-1"
    assert item.tier == 1
    assert item.tier_trigger == "pricing_request"
    assert item.why_now == "Pricing asked an hour ago"
    assert item.action_type == ActionType.WORKFLOW
    assert item.title == "Respond to Pricing Inquiry"
    assert [s.id for s in item.workflow_steps] == ["step-1", "step-2"]
    assert item.workflow_steps[0].urgency == "high"
    assert item.estimated_minutes == 20
    assert item.momentum_score == 85
    assert item.contact_id == "c-1"
    assert item.company_id == "co-1"
    assert item.conversation_id == "conv-1"
    assert item.created_at == NOW
    assert item.source_hash == source_hash("email|e-1|pricing_request")


async def test_unclassified_email_is_parked_in_tier_5(service, item_repo):
    await service.regenerate()
    item = by_source(item_repo)["e-2"]

    assert item.tier == 5
    assert item.tier_trigger == NEEDS_AI_CLASSIFICATION
    assert item.action_type == ActionType.TASK_SIMPLE
    assert item.title == "Reply with times"
    assert item.description == "They asked for availability"
    assert item.contact_id is None


async def test_legacy_email_is_adapted(service, item_repo):
    await service.regenerate()
    item = by_source(item_repo)["e-3"]

    assert item.title == "Process email response"
    assert [s.title for s in item.workflow_steps] == ["Send deck", "Address question: Price?"]
    assert item.source_hash == source_hash("email|e-3|unknown")


async def test_transcript_becomes_follow_up_card(service, item_repo):
    await service.regenerate()
    item = by_source(item_repo)["t-1"]

    assert item.source == ItemSource.TRANSCRIPTION
    assert item.title == "Meeting Follow-ups: Acme Pest Control - onboarding"
    assert item.company_id == "co-2"
    assert item.tier == 3
    assert item.tier_trigger == "meeting_commitment"
    assert item.momentum_score == 70
    assert [s.title for s in item.workflow_steps] == ["Send recap", "Share rollout plan"]
    assert item.received_at == NOW - timedelta(days=1)
    assert "t-2" not in by_source(item_repo)


async def test_second_run_skips_duplicates(service, item_repo):
    await service.regenerate()
    second = await service.regenerate()

    assert second.items_created == 0
    assert second.duplicates_skipped == 4
    assert len(item_repo.all()) == 4


async def test_limit_applies_per_source(service):
    result = await service.regenerate(limit=1)

    assert result.emails_processed == 1
    assert result.transcripts_processed == 1
    assert result.items_created == 2


async def test_missing_user_is_a_configuration_error(item_repo):
    sources = InMemorySourceRepository(users=[UserRecord("u-0")], emails=[classified_email()])
    with pytest.raises(ConfigurationException):
        await RegenerationService(item_repo, sources).regenerate()


async def test_inventory(service):
    await service.regenerate()
    report = await service.inventory()

    assert report.emails_total == 5
    assert report.emails_analyzed == 5
    assert report.transcripts_analyzed == 2
    assert report.contacts == 1
    assert report.companies == 2
    assert report.deals == 3
    assert report.active_items == 4
    assert report.items_with_hash == 4
    assert report.to_dict()["deals"] == 3


def test_builder_uses_clock_for_timestamps():
    clock = FixedClock(NOW + timedelta(minutes=5))
    builder = ItemBuilder(clock)
    email = classified_email()

    built = builder.build_email_item("u-1", email, builder.email_actions(email))

    assert built.item.created_at == NOW + timedelta(minutes=5)
    assert built.item.received_at == NOW - timedelta(hours=1)


@pytest.mark.parametrize("comm_type, title", [
    ("demo_request", "Handle Demo Request"),
    ("contract_negotiation", "Advance Contract Discussion"),
    ("partner_intro", "Process partner intro"),
    (None, "Process response"),
])
def test_workflow_titles(comm_type, title):
    assert workflow_title(comm_type) == title
