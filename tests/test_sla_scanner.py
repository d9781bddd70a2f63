import json
from datetime import timedelta

import httpx
import pytest

from momentum.config import AggregateType, ProjectorStatus
from momentum.events.application import EventService
from momentum.events.domain import NewEvent
from momentum.lifecycle.application import CompanyProductReadModelProjector
from momentum.lifecycle.domain import CompanyProductEvent
from momentum.projections.application import ProjectorRunner
from momentum.sla.application import SCANNER_ACTOR, SLABreachScanner
from momentum.sla.domain import SLAConfig
from momentum.sla.infrastructure import SlackClient
from momentum.support.application import SupportCaseCommandService, SupportCaseProjector
from momentum.support.domain import SupportCaseEvent

from conftest import NOW, STAGES, FixedClock


@pytest.fixture
def runner(event_store, checkpoints, read_models):
    return ProjectorRunner(event_store, checkpoints, read_models, batch_size=50)


@pytest.fixture
def project(runner):
    projectors = [CompanyProductReadModelProjector(), SupportCaseProjector()]

    async def _project():
        for projector in projectors:
            result = await runner.run_to_completion(projector)
            assert result.success

    return _project


async def enter_kickoff(event_store, aggregate_id: str, days_ago: float) -> None:
    await EventService(event_store, SLAConfig(stages=STAGES)).append(NewEvent(
        aggregate_type=AggregateType.COMPANY_PRODUCT,
        aggregate_id=aggregate_id,
        event_type=CompanyProductEvent.PROCESS_SET,
        event_data={"toProcessType": "onboarding", "toProcessId": "p-1", "initialStageId": "kickoff"},
        occurred_at=NOW - timedelta(days=days_ago),
    ))


async def test_stage_breach_is_emitted_once(event_store, read_models, sla_config, project):
    await enter_kickoff(event_store, "cp-1", days_ago=5)
    await project()
    scanner = SLABreachScanner(event_store, read_models, sla_config)

    first = await scanner.scan(NOW)

    assert first.success
    assert first.scanned == 1
    assert first.breaches_detected == 1
    assert first.events_emitted == 1
    breach = (await event_store.load_stream("cp-1"))[-1]
    assert breach.event_type == CompanyProductEvent.SLA_BREACHED
    assert breach.actor_id == SCANNER_ACTOR
    assert breach.event_data["actualDays"] == 5
    assert breach.event_data["daysOver"] == 2

    await project()
    second = await scanner.scan(NOW + timedelta(hours=1))
    assert second.breaches_detected == 0
    assert second.warnings_detected == 0
    assert second.events_emitted == 0


async def test_stage_warning_before_breach(event_store, read_models, sla_config, project):
    await enter_kickoff(event_store, "cp-1", days_ago=2)
    await project()
    scanner = SLABreachScanner(event_store, read_models, sla_config)

    result = await scanner.scan(NOW)

    assert result.warnings_detected == 1
    assert result.breaches_detected == 0
    warning = (await event_store.load_stream("cp-1"))[-1]
    assert warning.event_type == CompanyProductEvent.SLA_WARNING
    assert warning.event_data["warningDays"] == 2

    again = await scanner.scan(NOW)
    assert again.warnings_detected == 0


async def test_on_track_stage_emits_nothing(event_store, read_models, sla_config, project):
    await enter_kickoff(event_store, "cp-1", days_ago=1)
    await project()

    result = await SLABreachScanner(event_store, read_models, sla_config).scan(NOW)

    assert result.events_emitted == 0
    assert len(await event_store.load_stream("cp-1")) == 1


async def test_support_clock_breach(event_store, read_models, sla_config, project):
    commands = SupportCaseCommandService(event_store, sla_config, clock=FixedClock(NOW - timedelta(hours=10)))
    case = await commands.open_case("Cannot log in", severity="high")
    await project()
    scanner = SLABreachScanner(event_store, read_models, sla_config)

    result = await scanner.scan(NOW)

    assert result.breaches_detected == 1
    breach = (await event_store.load_stream(case.support_case_id))[-1]
    assert breach.event_type == SupportCaseEvent.SLA_BREACHED
    assert breach.event_data["slaType"] == "first_response"
    assert breach.event_data["hoursOver"] == 6

    await project()
    assert (await scanner.scan(NOW)).breaches_detected == 0


async def test_support_breach_is_not_repeated_before_projection(event_store, read_models, sla_config, project):
    commands = SupportCaseCommandService(event_store, sla_config, clock=FixedClock(NOW - timedelta(hours=10)))
    case = await commands.open_case("Cannot log in", severity="high")
    await project()
    scanner = SLABreachScanner(event_store, read_models, sla_config)

    first = await scanner.scan(NOW)
    second = await scanner.scan(NOW + timedelta(minutes=5))

    assert first.breaches_detected == 1
    assert second.breaches_detected == 0
    breaches = [
        e for e in await event_store.load_stream(case.support_case_id)
        if e.event_type == SupportCaseEvent.SLA_BREACHED
    ]
    assert [e.event_data["slaType"] for e in breaches] == ["first_response"]


async def test_reconfigured_clock_can_breach_again(event_store, read_models, sla_config, project):
    clock = FixedClock(NOW - timedelta(hours=10))
    commands = SupportCaseCommandService(event_store, sla_config, clock=clock)
    case = await commands.open_case("Cannot log in", severity="high")
    await project()
    scanner = SLABreachScanner(event_store, read_models, sla_config)
    await scanner.scan(NOW)

    clock.now = NOW - timedelta(hours=3)
    await commands.configure_sla(case.support_case_id, "first_response", 1)
    await project()

    assert (await scanner.scan(NOW)).breaches_detected == 1


async def test_resolved_case_is_skipped(event_store, read_models, sla_config, project):
    clock = FixedClock(NOW - timedelta(hours=10))
    commands = SupportCaseCommandService(event_store, sla_config, clock=clock)
    case = await commands.open_case("Cannot log in", severity="high")
    clock.now = NOW - timedelta(hours=9)
    await commands.resolve(case.support_case_id, "Password reset")
    await project()

    result = await SLABreachScanner(event_store, read_models, sla_config).scan(NOW)

    assert result.breaches_detected == 0


async def test_bad_read_model_is_recorded_and_scan_continues(event_store, read_models, sla_config, project):
    await enter_kickoff(event_store, "cp-1", days_ago=5)
    await project()
    await read_models.save(
        CompanyProductReadModelProjector.name,
        AggregateType.COMPANY_PRODUCT,
        "cp-broken",
        {"stage_sla_days": "not a number"},
        1,
    )

    result = await SLABreachScanner(event_store, read_models, sla_config).scan(NOW)

    assert not result.success
    assert result.scanned == 2
    assert result.breaches_detected == 1
    assert result.errors[0]["aggregate_id"] == "cp-broken"


async def test_breach_notifies_slack(event_store, read_models, sla_config, project):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return httpx.Response(200, text="ok")

    slack = SlackClient(
        webhook_url="https://hooks.slack.test/T000",
        channel="#alerts",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_base_delay=0,
    )
    await enter_kickoff(event_store, "cp-1", days_ago=5)
    await project()

    result = await SLABreachScanner(event_store, read_models, sla_config, slack).scan(NOW)
    await slack.close()

    assert result.notifications_sent == 1
    assert requests[0]["channel"] == "#alerts"
    assert requests[0]["blocks"][0]["text"]["text"] == "SLA breached: Kickoff"


async def test_disabled_slack_sends_nothing(event_store, read_models, sla_config, project):
    await enter_kickoff(event_store, "cp-1", days_ago=5)
    await project()

    slack = SlackClient(webhook_url="")
    result = await SLABreachScanner(event_store, read_models, sla_config, slack).scan(NOW)

    assert result.breaches_detected == 1
    assert result.notifications_sent == 0


async def test_breach_event_is_projected(event_store, read_models, checkpoints, sla_config, project, runner):
    await enter_kickoff(event_store, "cp-1", days_ago=5)
    await project()
    await SLABreachScanner(event_store, read_models, sla_config).scan(NOW)

    await project()

    checkpoint = await runner.get_checkpoint(CompanyProductReadModelProjector.name)
    assert checkpoint.status == ProjectorStatus.ACTIVE
    stored = await read_models.get(CompanyProductReadModelProjector.name, "cp-1")
    assert stored.data["is_sla_breached"] is True
