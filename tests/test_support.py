from datetime import timedelta

import pytest

from momentum.config import AggregateType, EngagementImpact, SLAType, SupportCaseStatus
from momentum.core.exceptions import (
    ConcurrencyException,
    ConfigurationException,
    DomainException,
    ResourceNotFoundException,
    ValidationException,
)
from momentum.events.domain import NewEvent, StoredEvent
from momentum.projections.application import fold
from momentum.sla.domain import SLAConfig
from momentum.support.application import (
    SupportCaseCommandService,
    SupportCaseProjector,
    engagement_impact_for_csat,
)
from momentum.support.domain import SupportCaseEvent

from conftest import NOW


@pytest.fixture
def service(event_store, sla_config, clock):
    return SupportCaseCommandService(event_store, sla_config, clock=clock)


async def test_open_case_starts_both_clocks(service, event_store):
    case = await service.open_case("Login broken", severity="high")

    assert case.status == SupportCaseStatus.OPEN
    assert case.opened_at == NOW
    assert case.first_response_sla.target_hours == 4
    assert case.first_response_sla.due_at == NOW + timedelta(hours=4)
    assert case.first_response_sla.warning_at == NOW + timedelta(hours=3)
    assert case.resolution_sla.due_at == NOW + timedelta(hours=24)

    events = await event_store.load_stream(case.support_case_id)
    assert [e.event_type for e in events] == [
        SupportCaseEvent.CREATED,
        SupportCaseEvent.SLA_CONFIGURED,
        SupportCaseEvent.SLA_CONFIGURED,
    ]


async def test_open_case_with_default_targets(event_store, clock):
    case = await SupportCaseCommandService(event_store, clock=clock).open_case("Slow reports")

    assert case.severity == "medium"
    assert case.first_response_sla.due_at == NOW + timedelta(hours=8)
    assert case.resolution_sla.due_at == NOW + timedelta(hours=48)


async def test_missing_target_is_a_configuration_error(service, event_store, monkeypatch):
    monkeypatch.setattr(SLAConfig, "target_hours", lambda self, severity, sla_type: None)

    with pytest.raises(ConfigurationException):
        await service.open_case("Login broken", severity="high")
    assert await event_store.fetch_after(0) == []


async def test_open_case_rejects_unknown_severity(service):
    with pytest.raises(ValidationException):
        await service.open_case("x", severity="apocalyptic")


async def test_unknown_case_raises_not_found(service):
    with pytest.raises(ResourceNotFoundException):
        await service.get("missing")


async def test_severity_change_retargets_from_opened_at(service, clock):
    case = await service.open_case("Outage", severity="medium")
    clock.now = NOW + timedelta(hours=2)

    case = await service.change_severity(case.support_case_id, "critical", reason="Production down")

    assert case.severity == "critical"
    assert case.first_response_sla.target_hours == 1
    assert case.first_response_sla.due_at == NOW + timedelta(hours=1)
    assert case.resolution_sla.due_at == NOW + timedelta(hours=4)
    # The event happened after the new first-response deadline
    assert case.first_response_sla.is_breached


async def test_severity_change_carries_targets_in_event(service, event_store):
    case = await service.open_case("Outage", severity="low")
    await service.change_severity(case.support_case_id, "urgent")

    change = (await event_store.load_stream(case.support_case_id))[-1]
    assert change.event_type == SupportCaseEvent.SEVERITY_CHANGED
    assert change.event_data["newFirstResponseTargetHours"] == 2
    assert change.event_data["newResolutionTargetHours"] == 8
    assert change.event_data["newFirstResponseWarningAt"] == "2026-01-06T16:30:00+00:00"


async def test_met_clock_is_not_retargeted(service, clock):
    case = await service.open_case("Question", severity="low")
    clock.now = NOW + timedelta(minutes=30)
    await service.record_agent_response(case.support_case_id, responder_id="agent-1")

    case = await service.change_severity(case.support_case_id, "critical")

    assert case.first_response_sla.met_at == NOW + timedelta(minutes=30)
    assert case.first_response_sla.target_hours == 24
    assert case.resolution_sla.target_hours == 4


async def test_first_response_meets_clock_once(service, clock):
    case = await service.open_case("Question", severity="high")
    clock.now = NOW + timedelta(hours=1)
    case = await service.record_agent_response(case.support_case_id)
    clock.now = NOW + timedelta(hours=2)
    case = await service.record_agent_response(case.support_case_id)

    assert case.first_response_at == NOW + timedelta(hours=1)
    assert case.first_response_sla.met_at == NOW + timedelta(hours=1)
    assert not case.first_response_sla.is_breached
    assert case.agent_response_count == 2


async def test_late_first_response_is_breached(service, clock):
    case = await service.open_case("Question", severity="critical")
    clock.now = NOW + timedelta(hours=3)

    case = await service.record_agent_response(case.support_case_id)

    assert case.first_response_sla.is_met
    assert case.first_response_sla.is_breached
    assert case.first_response_sla.breached_at == NOW + timedelta(hours=1)


async def test_resolve_close_reopen(service, clock):
    case = await service.open_case("Bug", severity="medium")
    case_id = case.support_case_id
    clock.now = NOW + timedelta(hours=10)

    case = await service.resolve(case_id, "Patched", root_cause="regression")
    assert case.status == SupportCaseStatus.RESOLVED
    assert case.resolution_time_hours == 10
    assert case.resolution_sla.is_met

    with pytest.raises(DomainException):
        await service.resolve(case_id, "Again")

    case = await service.close(case_id)
    assert case.is_closed
    with pytest.raises(DomainException):
        await service.assign(case_id, "agent-2")

    case = await service.reopen(case_id, reason="Still broken")
    assert case.status == SupportCaseStatus.OPEN
    assert case.reopen_count == 1
    assert case.resolved_at is None
    assert case.resolution_sla.met_at is None
    assert case.resolution_sla.is_running


async def test_resolve_requires_summary(service):
    case = await service.open_case("Bug")
    with pytest.raises(ValidationException):
        await service.resolve(case.support_case_id, "   ")


async def test_reopen_requires_resolution(service):
    case = await service.open_case("Bug")
    with pytest.raises(DomainException):
        await service.reopen(case.support_case_id)


async def test_status_change_guards(service):
    case = await service.open_case("Bug")
    with pytest.raises(DomainException):
        await service.change_status(case.support_case_id, SupportCaseStatus.RESOLVED)

    case = await service.change_status(case.support_case_id, SupportCaseStatus.WAITING_ON_CUSTOMER)
    assert case.status == SupportCaseStatus.WAITING_ON_CUSTOMER


async def test_escalation_reassigns(service):
    case = await service.open_case("Bug")
    case = await service.escalate(
        case.support_case_id, reason="VIP", to_team="tier-2", to_user_id="u-9", to_user_name="Sam"
    )
    assert case.status == SupportCaseStatus.ESCALATED
    assert case.escalation_level == 1
    assert case.owner_id == "u-9"
    assert case.assigned_team == "tier-2"


async def test_csat_sets_engagement_impact(service):
    case = await service.open_case("Bug")
    with pytest.raises(DomainException):
        await service.submit_csat(case.support_case_id, 5)

    await service.resolve(case.support_case_id, "Fixed")
    with pytest.raises(ValidationException):
        await service.submit_csat(case.support_case_id, 6)

    case = await service.submit_csat(case.support_case_id, 2, comment="slow")
    assert case.csat_score == 2
    assert case.engagement_impact == EngagementImpact.NEGATIVE


@pytest.mark.parametrize("score, impact", [
    (5, EngagementImpact.POSITIVE),
    (4, EngagementImpact.POSITIVE),
    (3, EngagementImpact.NEUTRAL),
    (2, EngagementImpact.NEGATIVE),
    (1, EngagementImpact.CRITICAL),
])
def test_engagement_impact_for_csat(score, impact):
    assert engagement_impact_for_csat(score) == impact


async def test_tags_are_idempotent(service, event_store):
    case = await service.open_case("Bug")
    case_id = case.support_case_id
    await service.add_tag(case_id, "billing")
    case = await service.add_tag(case_id, "billing")
    assert case.tags == ["billing"]
    assert len(await event_store.load_stream(case_id)) == 4

    case = await service.remove_tag(case_id, "billing")
    assert case.tags == []


async def test_stale_expected_version_is_rejected(service):
    case = await service.open_case("Bug")
    with pytest.raises(ConcurrencyException):
        await service.assign(case.support_case_id, "agent-1", expected_version=1)


async def test_custom_sla_counts_from_now(service, clock):
    case = await service.open_case("Bug")
    clock.now = NOW + timedelta(hours=5)

    case = await service.configure_sla(case.support_case_id, SLAType.UPDATE, 2)

    clock_state = case.slas[SLAType.UPDATE]
    assert clock_state.due_at == NOW + timedelta(hours=7)
    assert clock_state.config_source == "manual"


async def test_customer_message_counts(service):
    case = await service.open_case("Bug")
    case = await service.log_customer_message(case.support_case_id, summary="any update?")
    assert case.customer_response_count == 1
    assert case.last_customer_contact_at == NOW


async def test_folding_a_case_history_twice_gives_the_same_state(service, event_store, clock):
    case = await service.open_case("Export fails", severity="medium")
    case_id = case.support_case_id
    clock.now = NOW + timedelta(hours=1)
    await service.change_severity(case_id, "high", reason="Month end")
    clock.now = NOW + timedelta(hours=2)
    await service.record_agent_response(case_id, responder_id="agent-1")
    clock.now = NOW + timedelta(hours=30)
    await service.resolve(case_id, "Timeout raised")
    clock.now = NOW + timedelta(hours=31)
    await service.reopen(case_id, reason="Fails again")
    clock.now = NOW + timedelta(hours=40)
    await service.resolve(case_id, "Query rewritten")
    await service.submit_csat(case_id, 4)

    events = await event_store.load_stream(case_id)
    projector = SupportCaseProjector()
    first = fold(projector, events, projector.get_initial_state())
    second = fold(projector, events, projector.get_initial_state())

    assert first == second
    assert fold(projector, events, first) == first
    assert first.reopen_count == 1
    assert first.csat_score == 4
    assert first.first_response_sla.met_at == NOW + timedelta(hours=2)
    assert first.resolution_sla.is_breached


async def test_replay_uses_targets_recorded_in_the_event(service, event_store, monkeypatch):
    case = await service.open_case("Outage", severity="medium")
    await service.change_severity(case.support_case_id, "critical")
    events = await event_store.load_stream(case.support_case_id)

    monkeypatch.setattr(SLAConfig, "target_hours", lambda self, severity, sla_type: 999)
    state = fold(SupportCaseProjector(), events)

    assert state.first_response_sla.target_hours == 1
    assert state.resolution_sla.due_at == NOW + timedelta(hours=4)


async def test_severity_change_without_targets_keeps_clocks(service, event_store):
    case = await service.open_case("Outage", severity="medium")
    events = await event_store.load_stream(case.support_case_id)
    change = StoredEvent.from_new(
        NewEvent(
            aggregate_type=AggregateType.SUPPORT_CASE,
            aggregate_id=case.support_case_id,
            event_type=SupportCaseEvent.SEVERITY_CHANGED,
            event_data={"fromSeverity": "medium", "toSeverity": "critical"},
            occurred_at=NOW,
        ),
        sequence_number=len(events) + 1,
        global_sequence=len(events) + 1,
    )

    state = fold(SupportCaseProjector(), events + [change])

    assert state.severity == "critical"
    assert state.first_response_sla.target_hours == 8
