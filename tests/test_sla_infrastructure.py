import httpx
import pytest

from momentum.core.exceptions import ConfigurationException
from momentum.sla.infrastructure import (
    BreachNotice,
    CircuitBreaker,
    CircuitState,
    JobScheduler,
    SLAConfigManager,
    SlackClient,
)
from momentum.sla.domain import SLAConfig

NOTICE = BreachNotice(
    aggregate_type="SupportCase",
    aggregate_id="case-1",
    subject="Login broken",
    clock="first_response",
    target="4h",
    actual="10h",
    over_by="6h",
    detected_at="2026-01-06T15:00:00.000Z",
)

SLA_YAML = """
warning_ratio: 0.5
severity_targets:
  critical:
    first_response: 0.5
stages:
  - stage_id: kickoff
    name: Kickoff
    stage_order: 1
    sla_days: 3
    sla_warning_days: 2
"""


def slack_with(handler, **kwargs) -> SlackClient:
    return SlackClient(
        webhook_url="https://hooks.slack.test/T000",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_base_delay=0,
        **kwargs,
    )


class TestSlackClient:

    async def test_sends_block_kit_message(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        client = slack_with(handler, channel="#cc")
        assert await client.send_breach(NOTICE)
        await client.close()

        assert len(seen) == 1
        assert seen[0].url == "https://hooks.slack.test/T000"

    async def test_retries_then_gives_up(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(500)

        client = slack_with(handler)
        assert not await client.send_breach(NOTICE, max_retries=3)
        assert len(attempts) == 3
        await client.close()

    async def test_transport_errors_are_retried(self):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200)

        client = slack_with(handler)
        assert await client.send_breach(NOTICE)
        assert calls["n"] == 2
        await client.close()

    async def test_unconfigured_webhook_is_a_no_op(self):
        client = SlackClient(webhook_url="")
        assert not client.enabled
        assert not await client.send_breach(NOTICE)

    async def test_open_circuit_skips_requests(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        client = slack_with(handler)
        for _ in range(client.circuit_breaker.failure_threshold):
            client.circuit_breaker.record_failure()

        assert not await client.send_breach(NOTICE)
        assert calls == []
        await client.close()

    def test_message_fields(self):
        message = SlackClient(webhook_url="x", channel="#cc").build_message(NOTICE)
        assert message["channel"] == "#cc"
        fields = [f["text"] for f in message["blocks"][1]["fields"]]
        assert "*Over by:*\n6h" in fields


class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()

    def test_success_closes(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        breaker.record_failure()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED


class TestSLAConfigManager:

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text(SLA_YAML)

        config = SLAConfigManager().load(path)

        assert config.warning_ratio == 0.5
        assert config.target_hours("critical", "first_response") == 0.5
        assert config.target_hours("critical", "resolution") == 4
        assert config.target_hours("low", "first_response") == 24
        assert config.stage("kickoff").sla_days == 3

    def test_missing_file_uses_defaults(self, tmp_path):
        config = SLAConfigManager().load(tmp_path / "absent.yaml")
        assert config.stages == {}
        assert config.target_hours("medium", "resolution") == 48

    def test_constructed_config_has_every_severity(self):
        config = SLAConfig()

        assert config.target_hours("medium", "resolution") == 48
        assert config.target_hours("critical", "first_response") == 1
        assert config.target_hours("medium", "update") is None
        assert SLAConfig(severity_targets={"low": {"resolution": 96}}).target_hours("low", "first_response") == 24

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("stages: [unclosed")
        with pytest.raises(ConfigurationException):
            SLAConfigManager().load(path)

    def test_invalid_values_raise(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("warning_ratio: 3\n")
        with pytest.raises(ConfigurationException):
            SLAConfigManager().load(path)

    def test_failed_reload_keeps_previous_config(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text(SLA_YAML)
        manager = SLAConfigManager()
        manager.load(path)

        path.write_text("warning_ratio: [")
        assert manager.reload() is False
        assert manager.config.warning_ratio == 0.5

        path.write_text("warning_ratio: 0.9\n")
        assert manager.reload() is True
        assert manager.config.warning_ratio == 0.9

    def test_config_before_load_raises(self):
        with pytest.raises(RuntimeError):
            SLAConfigManager().config


class TestJobScheduler:

    async def test_registers_and_starts_jobs(self):
        async def tick():
            return None

        scheduler = JobScheduler()
        scheduler.add_interval_job("sla_scan", tick, seconds=300)
        scheduler.add_interval_job("projectors", tick, seconds=30)
        assert scheduler.job_ids == ["sla_scan", "projectors"]

        await scheduler.start()
        assert scheduler.is_running
        await scheduler.stop()
        assert not scheduler.is_running
