from datetime import datetime, timedelta, timezone

import pytest

from momentum.config import AggregateType
from momentum.core.exceptions import ConcurrencyException, ValidationException
from momentum.events.application import EventService
from momentum.events.domain import NewEvent
from momentum.events.infrastructure.repositories import SQLAlchemyEventStore

from conftest import NOW


def case_event(aggregate_id="case-1", event_type="SupportCaseCreated", occurred_at=NOW, **data):
    return NewEvent(
        aggregate_type=AggregateType.SUPPORT_CASE,
        aggregate_id=aggregate_id,
        event_type=event_type,
        event_data=data,
        occurred_at=occurred_at,
    )


class TestNewEvent:

    def test_requires_identity_fields(self):
        with pytest.raises(ValidationException):
            NewEvent(aggregate_type="", aggregate_id="a", event_type="X")
        with pytest.raises(ValidationException):
            NewEvent(aggregate_type="T", aggregate_id="", event_type="X")
        with pytest.raises(ValidationException):
            NewEvent(aggregate_type="T", aggregate_id="a", event_type="")

    def test_rejects_unknown_actor_type(self):
        with pytest.raises(ValidationException):
            NewEvent(aggregate_type="T", aggregate_id="a", event_type="X", actor_type="robot")

    def test_rejects_version_below_one(self):
        with pytest.raises(ValidationException):
            NewEvent(aggregate_type="T", aggregate_id="a", event_type="X", event_version=0)

    def test_naive_occurred_at_is_treated_as_utc(self):
        event = NewEvent(aggregate_type="T", aggregate_id="a", event_type="X",
                         occurred_at=datetime(2026, 1, 6, 12, 0))
        assert event.occurred_at == datetime(2026, 1, 6, 12, 0, tzinfo=timezone.utc)


class TestInMemoryEventStore:

    async def test_sequence_numbers_start_at_one_per_aggregate(self, event_store):
        first = await event_store.append(case_event("a"))
        second = await event_store.append(case_event("a", "SupportCaseAssigned"))
        other = await event_store.append(case_event("b"))

        assert (first.sequence_number, second.sequence_number) == (1, 2)
        assert other.sequence_number == 1
        assert [e.global_sequence for e in (first, second, other)] == [1, 2, 3]
        assert await event_store.current_version("a") == 2
        assert await event_store.current_version("missing") == 0

    async def test_expected_version_mismatch_raises(self, event_store):
        await event_store.append(case_event("a"), expected_version=0)

        with pytest.raises(ConcurrencyException) as exc:
            await event_store.append(case_event("a", "SupportCaseAssigned"), expected_version=0)

        assert exc.value.expected_version == 0
        assert exc.value.actual_version == 1
        assert len(await event_store.load_stream("a")) == 1

    async def test_append_many_is_single_aggregate(self, event_store):
        with pytest.raises(ValidationException):
            await event_store.append_many([case_event("a"), case_event("b")])
        assert event_store.all_events() == []

    async def test_append_many_assigns_consecutive_sequences(self, event_store):
        stored = await event_store.append_many(
            [case_event("a"), case_event("a", "SlaConfigured"), case_event("a", "SlaConfigured")],
            expected_version=0,
        )
        assert [e.sequence_number for e in stored] == [1, 2, 3]

    async def test_load_stream_after_sequence(self, event_store):
        await event_store.append_many([case_event("a"), case_event("a", "Y"), case_event("a", "Z")])
        tail = await event_store.load_stream("a", after_sequence=1)
        assert [e.event_type for e in tail] == ["Y", "Z"]

    async def test_fetch_after_filters_by_aggregate_type(self, event_store):
        await event_store.append(case_event("a"))
        await event_store.append(NewEvent(
            aggregate_type=AggregateType.COMPANY_PRODUCT,
            aggregate_id="cp-1",
            event_type="CompanyProductTierSet",
        ))
        await event_store.append(case_event("b"))

        events = await event_store.fetch_after(0, aggregate_types=[AggregateType.SUPPORT_CASE])
        assert [e.aggregate_id for e in events] == ["a", "b"]

        later = await event_store.fetch_after(2, limit=10)
        assert [e.global_sequence for e in later] == [3]

    async def test_has_event_since(self, event_store):
        await event_store.append(case_event("a", "SlaBreached", occurred_at=NOW))

        assert await event_store.has_event_since("a", "SlaBreached", NOW - timedelta(hours=1))
        assert await event_store.has_event_since("a", "SlaBreached", NOW)
        assert not await event_store.has_event_since("a", "SlaBreached", NOW + timedelta(seconds=1))
        assert not await event_store.has_event_since("a", "Other", NOW - timedelta(hours=1))


class TestSQLAlchemyEventStore:

    async def test_append_and_load(self, session):
        store = SQLAlchemyEventStore(session)
        await store.append(case_event("a", title="Login broken"), expected_version=0)
        await store.append(case_event("a", "SupportCaseAssigned"), expected_version=1)

        stream = await store.load_stream("a")
        assert [e.sequence_number for e in stream] == [1, 2]
        assert stream[0].event_data == {"title": "Login broken"}
        assert stream[0].occurred_at == NOW
        assert stream[0].occurred_at.tzinfo is not None
        assert await store.current_version("a") == 2

    async def test_stale_expected_version_raises(self, session):
        store = SQLAlchemyEventStore(session)
        await store.append(case_event("a"))

        with pytest.raises(ConcurrencyException):
            await store.append(case_event("a", "SupportCaseAssigned"), expected_version=0)

    async def test_global_order_and_type_filter(self, session):
        store = SQLAlchemyEventStore(session)
        await store.append(case_event("a"))
        await store.append(NewEvent(
            aggregate_type=AggregateType.COMPANY_PRODUCT,
            aggregate_id="cp-1",
            event_type="CompanyProductTierSet",
        ))
        await store.append(case_event("b"))

        all_events = await store.fetch_after(0)
        sequences = [e.global_sequence for e in all_events]
        assert sequences == sorted(sequences)
        assert len(sequences) == 3

        cases = await store.fetch_after(0, aggregate_types=[AggregateType.SUPPORT_CASE])
        assert [e.aggregate_id for e in cases] == ["a", "b"]

    async def test_has_event_since(self, session):
        store = SQLAlchemyEventStore(session)
        await store.append(case_event("a", "SlaBreached", occurred_at=NOW))

        assert await store.has_event_since("a", "SlaBreached", NOW - timedelta(days=1))
        assert not await store.has_event_since("a", "SlaBreached", NOW + timedelta(minutes=1))


async def test_event_service_appends_and_reads(event_store):
    service = EventService(event_store)
    stored = await service.append(case_event("a"), expected_version=0)

    assert stored.sequence_number == 1
    assert [e.id for e in await service.get_stream("a")] == [stored.id]


async def test_event_service_stamps_sla_settings(event_store, sla_config):
    service = EventService(event_store, sla_config)

    stored = await service.append(NewEvent(
        aggregate_type=AggregateType.COMPANY_PRODUCT,
        aggregate_id="cp-1",
        event_type="CompanyProductStageSet",
        event_data={"toStageId": "configuration"},
        occurred_at=NOW,
    ))
    severity = await service.append(case_event("a", "SupportCaseSeverityChanged", toSeverity="critical"))

    assert stored.event_data["toStageName"] == "Configuration"
    assert stored.event_data["slaDays"] == 10
    assert stored.event_data["slaWarningDays"] == 7
    assert severity.event_data["newFirstResponseTargetHours"] == 1
    assert severity.event_data["newResolutionTargetHours"] == 4
    assert severity.event_data["warningRatio"] == 0.75


async def test_event_service_without_config_appends_payload_as_is(event_store):
    stored = await EventService(event_store).append(NewEvent(
        aggregate_type=AggregateType.COMPANY_PRODUCT,
        aggregate_id="cp-1",
        event_type="CompanyProductStageSet",
        event_data={"toStageId": "configuration"},
    ))
    assert stored.event_data == {"toStageId": "configuration"}
