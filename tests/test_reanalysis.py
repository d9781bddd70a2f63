from datetime import timedelta

import pytest

from momentum.command_center.application import ReanalysisService, extract_json
from momentum.command_center.domain import CommandCenterItem, NEEDS_AI_CLASSIFICATION
from momentum.config import ItemStatus, TierSlaStatus
from momentum.infrastructure.llm import ChatCompletionResult, ILLMClient, MockLLMClient

from conftest import NOW


class GarbageLLMClient(ILLMClient):
    """Answers in prose instead of JSON."""

    def __init__(self):
        self.calls = []

    async def chat_completion(self, messages, temperature=0.2, max_tokens=800, operation="chat_completion"):
        self.calls.append(messages)
        return ChatCompletionResult("I would say tier 2.", "garbage", 10, 5, 1)


def parked(**kwargs) -> CommandCenterItem:
    kwargs.setdefault("user_id", "u-1")
    kwargs.setdefault("title", "Reply with times")
    kwargs.setdefault("created_at", NOW - timedelta(hours=1))
    return CommandCenterItem(tier=5, tier_trigger=NEEDS_AI_CLASSIFICATION, **kwargs)


@pytest.fixture
async def stored(item_repo):
    item = parked(received_at=NOW - timedelta(minutes=30))
    await item_repo.add(item)
    return item


async def test_playbook_trigger_is_reclassified(item_repo, stored, clock):
    llm = MockLLMClient({"tier": 1, "tier_trigger": "demo_request", "why_now": "They asked for a demo."})

    result = await ReanalysisService(item_repo, llm, clock).reanalyze()

    assert (result.processed, result.reclassified, result.still_unclassified) == (1, 1, 0)
    item = await item_repo.get(stored.id)
    assert item.tier == 1
    assert item.tier_trigger == "demo_request"
    assert item.sla_minutes == 15
    assert item.sla_status == TierSlaStatus.BREACHED
    assert item.why_now == "They asked for a demo."
    assert item.updated_at == NOW


async def test_default_mock_is_nurture(item_repo, stored, clock):
    result = await ReanalysisService(item_repo, MockLLMClient(), clock).reanalyze()

    assert result.reclassified == 1
    item = await item_repo.get(stored.id)
    assert (item.tier, item.tier_trigger) == (5, "nurture")


async def test_unknown_trigger_keeps_ai_values(item_repo, stored, clock):
    llm = MockLLMClient({"tier": 2, "tier_trigger": "exec_sponsor_change", "sla_minutes": 90})

    await ReanalysisService(item_repo, llm, clock).reanalyze()

    item = await item_repo.get(stored.id)
    assert (item.tier, item.tier_trigger, item.sla_minutes) == (2, "exec_sponsor_change", 90)


async def test_out_of_range_tier_stays_parked(item_repo, stored, clock):
    result = await ReanalysisService(item_repo, MockLLMClient({"tier": 9}), clock).reanalyze()

    assert result.still_unclassified == 1
    assert (await item_repo.get(stored.id)).tier_trigger == NEEDS_AI_CLASSIFICATION


async def test_unparseable_reply_is_recorded(item_repo, stored, clock):
    llm = GarbageLLMClient()

    result = await ReanalysisService(item_repo, llm, clock).reanalyze()

    assert result.processed == 1
    assert result.errors[0].record_id == stored.id
    assert "Reply with times" in llm.calls[0][1]["content"]


async def test_only_open_parked_items_are_picked(item_repo, clock):
    done = parked(status=ItemStatus.COMPLETED)
    classified = CommandCenterItem(user_id="u-1", title="x", tier=1, tier_trigger="demo_request")
    await item_repo.add(done)
    await item_repo.add(classified)

    result = await ReanalysisService(item_repo, MockLLMClient(), clock).reanalyze()

    assert result.processed == 0


async def test_limit(item_repo, clock):
    for i in range(3):
        await item_repo.add(parked(title=f"item {i}"))

    result = await ReanalysisService(item_repo, MockLLMClient(), clock).reanalyze(limit=2)

    assert result.processed == 2


def test_extract_json_handles_fences():
    assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json('```\n{"a": 2}\n```') == {"a": 2}
    assert extract_json('{"a": 3}') == {"a": 3}
