import asyncio
from typing import Any, Dict, Optional

import pytest

from momentum.config import ProjectorStatus
from momentum.core.exceptions import ResourceNotFoundException
from momentum.events.domain import NewEvent, StoredEvent
from momentum.projections.application import Projector, ProjectorLocks, ProjectorRunner, fold
from momentum.projections.infrastructure.repositories import (
    SQLAlchemyCheckpointRepository,
    SQLAlchemyReadModelStore,
)
from momentum.events.infrastructure.repositories import SQLAlchemyEventStore


class CounterProjector(Projector[dict]):
    """Counts events per aggregate; fails on event types listed in `poison`."""

    name = "counter"
    aggregate_types = ("Counter",)

    def __init__(self):
        self.poison = set()
        self.applied = 0

    def get_initial_state(self) -> Optional[dict]:
        return None

    def apply(self, state: Optional[dict], event: StoredEvent) -> dict:
        if event.event_type in self.poison:
            raise RuntimeError(f"cannot apply {event.event_type}")
        self.applied += 1
        state = dict(state or {"count": 0, "types": []})
        state["count"] += 1
        state["types"] = state["types"] + [event.event_type]
        return state

    def serialize(self, state: dict) -> Dict[str, Any]:
        return state

    def deserialize(self, data: Dict[str, Any]) -> dict:
        return dict(data)


def counter_event(aggregate_id: str, event_type: str) -> NewEvent:
    return NewEvent(aggregate_type="Counter", aggregate_id=aggregate_id, event_type=event_type)


@pytest.fixture
def runner(event_store, checkpoints, read_models):
    return ProjectorRunner(event_store, checkpoints, read_models, batch_size=2)


async def test_run_to_completion_processes_every_batch(event_store, runner, read_models):
    projector = CounterProjector()
    for i in range(5):
        await event_store.append(counter_event("c1", f"E{i}"))

    result = await runner.run_to_completion(projector)

    assert result.success
    assert result.events_processed == 5
    assert result.last_processed_sequence == 5
    stored = await read_models.get("counter", "c1")
    assert stored.data["count"] == 5
    assert stored.projection_version == 5


async def test_run_processes_one_batch(event_store, runner):
    projector = CounterProjector()
    for i in range(3):
        await event_store.append(counter_event("c1", f"E{i}"))

    result = await runner.run(projector)

    assert result.events_processed == 2
    checkpoint = await runner.get_checkpoint("counter")
    assert checkpoint.last_processed_global_sequence == 2


async def test_failure_halts_without_advancing_past_failed_event(event_store, runner, read_models):
    projector = CounterProjector()
    projector.poison.add("Bad")
    await event_store.append(counter_event("c1", "Good"))
    await event_store.append(counter_event("c1", "Bad"))
    await event_store.append(counter_event("c1", "Good"))

    result = await runner.run_to_completion(projector)

    assert not result.success
    assert result.halted
    assert result.events_processed == 1
    assert result.errors[0].global_sequence == 2
    assert result.errors[0].event_type == "Bad"

    checkpoint = await runner.get_checkpoint("counter")
    assert checkpoint.status == ProjectorStatus.ERROR
    assert checkpoint.last_processed_global_sequence == 1
    assert checkpoint.errors_count == 1
    assert "cannot apply Bad" in checkpoint.last_error
    assert (await read_models.get("counter", "c1")).data["count"] == 1


async def test_halted_projector_stays_halted_until_resume(event_store, runner, read_models):
    projector = CounterProjector()
    projector.poison.add("Bad")
    await event_store.append(counter_event("c1", "Bad"))
    await runner.run_to_completion(projector)

    projector.poison.clear()
    again = await runner.run_to_completion(projector)
    assert again.halted
    assert again.events_processed == 0
    assert projector.applied == 0

    checkpoint = await runner.resume("counter")
    assert checkpoint.status == ProjectorStatus.ACTIVE

    resumed = await runner.run_to_completion(projector)
    assert resumed.success
    assert resumed.events_processed == 1
    assert (await read_models.get("counter", "c1")).data["types"] == ["Bad"]


async def test_resume_unknown_projector_raises(runner):
    with pytest.raises(ResourceNotFoundException):
        await runner.resume("never-ran")


async def test_pause_stops_processing(event_store, runner):
    projector = CounterProjector()
    await event_store.append(counter_event("c1", "E"))

    await runner.pause("counter")
    result = await runner.run(projector)

    assert result.halted
    assert result.events_processed == 0


async def test_rebuild_replays_from_scratch(event_store, runner, read_models):
    projector = CounterProjector()
    await event_store.append(counter_event("c1", "A"))
    await event_store.append(counter_event("c2", "B"))
    await runner.run_to_completion(projector)

    result = await runner.rebuild(projector)

    assert result.success
    assert result.events_processed == 2
    checkpoint = await runner.get_checkpoint("counter")
    assert checkpoint.status == ProjectorStatus.ACTIVE
    assert checkpoint.events_processed_count == 2
    assert (await read_models.get("counter", "c1")).data["count"] == 1


async def test_already_projected_events_are_skipped(event_store, runner, read_models):
    projector = CounterProjector()
    await event_store.append(counter_event("c1", "A"))
    await event_store.append(counter_event("c1", "B"))
    await runner.run_to_completion(projector)

    # Checkpoint lost, read model kept: replay must not double count
    checkpoint = await runner.get_checkpoint("counter")
    checkpoint.reset()
    await runner._checkpoints.save(checkpoint)

    await runner.run_to_completion(projector)
    assert (await read_models.get("counter", "c1")).data["count"] == 2


async def test_other_aggregate_types_are_not_fetched(event_store, runner):
    projector = CounterProjector()
    await event_store.append(NewEvent(aggregate_type="Other", aggregate_id="o1", event_type="X"))

    result = await runner.run_to_completion(projector)

    assert result.events_processed == 0
    assert projector.applied == 0


def test_fold_matches_runner_semantics(event_store):
    projector = CounterProjector()
    events = [
        StoredEvent.from_new(counter_event("c1", t), sequence_number=i, global_sequence=i)
        for i, t in enumerate(("A", "B", "C"), start=1)
    ]
    assert fold(projector, events) == {"count": 3, "types": ["A", "B", "C"]}


async def test_sqlalchemy_checkpoint_and_read_models(session):
    store = SQLAlchemyEventStore(session)
    runner = ProjectorRunner(
        store,
        SQLAlchemyCheckpointRepository(session),
        SQLAlchemyReadModelStore(session),
        batch_size=10,
    )
    projector = CounterProjector()
    projector.poison.add("Bad")
    await store.append(counter_event("c1", "Good"))
    await store.append(counter_event("c1", "Bad"))

    result = await runner.run_to_completion(projector)

    assert result.halted
    checkpoint = await runner.get_checkpoint("counter")
    assert checkpoint.status == ProjectorStatus.ERROR
    assert checkpoint.last_processed_global_sequence == result.errors[0].global_sequence - 1

    projector.poison.clear()
    await runner.resume("counter")
    resumed = await runner.run_to_completion(projector)
    assert resumed.success
    stored = await SQLAlchemyReadModelStore(session).get("counter", "c1")
    assert stored.data["count"] == 2
    assert stored.projection_version == 2


def test_runners_only_share_locks_they_are_given(event_store, checkpoints, read_models):
    shared = ProjectorLocks()
    first = ProjectorRunner(event_store, checkpoints, read_models, locks=shared)
    second = ProjectorRunner(event_store, checkpoints, read_models, locks=shared)
    alone = ProjectorRunner(event_store, checkpoints, read_models)

    assert first._lock_for("counter") is second._lock_for("counter")
    assert alone._lock_for("counter") is not first._lock_for("counter")
    assert ProjectorRunner(event_store, checkpoints, read_models)._lock_for("counter") is not alone._lock_for("counter")


async def test_runners_sharing_locks_apply_each_event_once(event_store, checkpoints, read_models):
    locks = ProjectorLocks()
    projector = CounterProjector()
    for i in range(6):
        await event_store.append(counter_event("c1", f"E{i}"))

    results = await asyncio.gather(*[
        ProjectorRunner(event_store, checkpoints, read_models, batch_size=2, locks=locks).run_to_completion(projector)
        for _ in range(3)
    ])

    assert sum(r.events_processed for r in results) == 6
    assert projector.applied == 6
    assert (await read_models.get("counter", "c1")).data["count"] == 6
