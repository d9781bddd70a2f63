"""
Projection Application Services
===============================

ProjectorRunner drives projectors through the global event log.

Error policy: when `apply` raises, the runner records the failure on the
checkpoint (errors_count, last_error, status=error) and stops. The checkpoint
keeps pointing at the last event that was applied, so the failed event is
retried after `resume`. A projector in `error` or `paused` status does not
process anything until it is resumed.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from momentum.config import ProjectorStatus, settings
from momentum.core.exceptions import ResourceNotFoundException
from momentum.events.application import IEventStore
from momentum.events.domain import StoredEvent
from momentum.projections.application.projector import Projector
from momentum.projections.domain import (
    ProjectorCheckpoint,
    ProjectorError,
    ProjectorResult,
    StoredReadModel,
)
from momentum.shared.infrastructure.logging import get_logger
from momentum.shared.timeutils import utc_now

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ICheckpointRepository(ABC):
    """Persistence for projector checkpoints."""

    @abstractmethod
    async def get(self, projector_name: str) -> Optional[ProjectorCheckpoint]:
        """Checkpoint for the projector, or None when it never ran."""

    @abstractmethod
    async def save(self, checkpoint: ProjectorCheckpoint) -> None:
        """Insert or update a checkpoint."""

    @abstractmethod
    async def list_all(self) -> List[ProjectorCheckpoint]:
        """Every known checkpoint."""


class IReadModelStore(ABC):
    """Persistence for projector states keyed by (projector, aggregate)."""

    @abstractmethod
    async def get(self, projector_name: str, aggregate_id: str) -> Optional[StoredReadModel]:
        """Stored state of one aggregate."""

    @abstractmethod
    async def save(
        self,
        projector_name: str,
        aggregate_type: str,
        aggregate_id: str,
        data: Dict[str, Any],
        projection_version: int
    ) -> None:
        """Insert or replace the state of one aggregate."""

    @abstractmethod
    async def list(
        self,
        projector_name: str,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[StoredReadModel]:
        """States of every aggregate the projector has seen."""

    @abstractmethod
    async def clear(self, projector_name: str) -> int:
        """Delete all states of a projector; returns the number removed."""


# ========== Runner ==========

class ProjectorLocks:
    """
    One asyncio.Lock per projector name.

    Create one registry per event loop (the app builds it in lifespan) and
    hand it to every runner that must not overlap with the others.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, projector_name: str) -> asyncio.Lock:
        lock = self._locks.get(projector_name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[projector_name] = lock
        return lock


class ProjectorRunner:
    """
    Applies new events to projectors and tracks checkpoints.

    Runs of the same projector are serialized with the lock from `locks`, so
    each aggregate's events are applied one at a time in sequence order.
    Runners sharing a ProjectorLocks never overlap; a runner built without
    one only serializes its own calls.
    """

    def __init__(
        self,
        event_store: IEventStore,
        checkpoints: ICheckpointRepository,
        read_models: IReadModelStore,
        batch_size: Optional[int] = None,
        locks: Optional[ProjectorLocks] = None
    ):
        self._store = event_store
        self._checkpoints = checkpoints
        self._read_models = read_models
        self._batch_size = batch_size or settings.projector_batch_size
        self._locks = locks or ProjectorLocks()

    def _lock_for(self, projector_name: str) -> asyncio.Lock:
        return self._locks.get(projector_name)

    async def get_checkpoint(self, projector_name: str) -> ProjectorCheckpoint:
        checkpoint = await self._checkpoints.get(projector_name)
        return checkpoint or ProjectorCheckpoint(projector_name=projector_name)

    async def run(self, projector: Projector) -> ProjectorResult:
        """Process at most one batch of new events."""
        async with self._lock_for(projector.name):
            return await self._run_batch(projector)

    async def run_to_completion(self, projector: Projector) -> ProjectorResult:
        """Process batches until the log is exhausted or an event fails."""
        async with self._lock_for(projector.name):
            return await self._drain(projector)

    async def rebuild(self, projector: Projector) -> ProjectorResult:
        """Drop the projector's read models and replay the whole log."""
        async with self._lock_for(projector.name):
            checkpoint = await self.get_checkpoint(projector.name)
            checkpoint.status = ProjectorStatus.REBUILDING
            checkpoint.reset()
            await self._checkpoints.save(checkpoint)

            removed = await self._read_models.clear(projector.name)
            logger.info(
                "Projector rebuild started",
                extra={"projector": projector.name, "read_models_cleared": removed}
            )

            result = await self._drain(projector)

            checkpoint = await self.get_checkpoint(projector.name)
            if result.success:
                checkpoint.status = ProjectorStatus.ACTIVE
                await self._checkpoints.save(checkpoint)
            return result

    async def resume(self, projector_name: str) -> ProjectorCheckpoint:
        """Manually clear an error or pause so the projector runs again."""
        checkpoint = await self._checkpoints.get(projector_name)
        if checkpoint is None:
            raise ResourceNotFoundException("ProjectorCheckpoint", projector_name)
        checkpoint.status = ProjectorStatus.ACTIVE
        await self._checkpoints.save(checkpoint)
        logger.info(
            "Projector resumed",
            extra={"projector": projector_name, "errors_count": checkpoint.errors_count}
        )
        return checkpoint

    async def pause(self, projector_name: str) -> ProjectorCheckpoint:
        checkpoint = await self.get_checkpoint(projector_name)
        checkpoint.status = ProjectorStatus.PAUSED
        await self._checkpoints.save(checkpoint)
        logger.info("Projector paused", extra={"projector": projector_name})
        return checkpoint

    async def _drain(self, projector: Projector) -> ProjectorResult:
        start = time.perf_counter()
        total = ProjectorResult(projector_name=projector.name, success=True)

        while True:
            batch = await self._run_batch(projector)
            total.events_processed += batch.events_processed
            total.last_processed_sequence = batch.last_processed_sequence
            total.errors.extend(batch.errors)
            if not batch.success:
                total.success = False
                total.halted = batch.halted
                break
            if batch.events_processed == 0:
                break

        total.duration_ms = round((time.perf_counter() - start) * 1000, 2)
        return total

    async def _run_batch(self, projector: Projector) -> ProjectorResult:
        start = time.perf_counter()
        checkpoint = await self.get_checkpoint(projector.name)
        result = ProjectorResult(
            projector_name=projector.name,
            success=True,
            last_processed_sequence=checkpoint.last_processed_global_sequence,
        )

        if checkpoint.is_halted:
            result.success = False
            result.halted = True
            if checkpoint.last_error:
                result.errors.append(ProjectorError(
                    event_id=None,
                    global_sequence=None,
                    event_type=None,
                    error=checkpoint.last_error,
                    timestamp=checkpoint.last_error_at or utc_now(),
                ))
            return result

        events = await self._store.fetch_after(
            checkpoint.last_processed_global_sequence,
            limit=self._batch_size,
            aggregate_types=projector.aggregate_types or None,
        )

        for event in events:
            try:
                await self._project(projector, event)
            except Exception as e:
                now = utc_now()
                checkpoint.record_error(f"{type(e).__name__}: {e}", now)
                await self._checkpoints.save(checkpoint)
                logger.error(
                    "Projector halted on event",
                    extra={
                        "projector": projector.name,
                        "event_id": str(event.id),
                        "event_type": event.event_type,
                        "global_sequence": event.global_sequence,
                        "error": str(e),
                    }
                )
                result.success = False
                result.halted = True
                result.errors.append(ProjectorError(
                    event_id=event.id,
                    global_sequence=event.global_sequence,
                    event_type=event.event_type,
                    error=str(e),
                    timestamp=now,
                ))
                break

            checkpoint.advance(event, utc_now())
            result.events_processed += 1
            result.last_processed_sequence = event.global_sequence

        if result.success and result.events_processed:
            await self._checkpoints.save(checkpoint)

        result.duration_ms = round((time.perf_counter() - start) * 1000, 2)
        if result.events_processed:
            logger.info(
                "Projector batch applied",
                extra={
                    "projector": projector.name,
                    "events_processed": result.events_processed,
                    "last_processed_sequence": result.last_processed_sequence,
                    "latency_ms": result.duration_ms,
                }
            )
        return result

    async def _project(self, projector: Projector, event: StoredEvent) -> None:
        if not projector.handles(event):
            return

        existing = await self._read_models.get(projector.name, event.aggregate_id)
        if existing is not None and existing.projection_version >= event.sequence_number:
            # Already reflected in the stored state
            return

        state = projector.deserialize(existing.data) if existing else projector.get_initial_state()
        new_state = projector.apply(state, event)
        if new_state is None:
            return

        await self._read_models.save(
            projector.name,
            event.aggregate_type,
            event.aggregate_id,
            projector.serialize(new_state),
            event.sequence_number,
        )


class ProjectionQueryService:
    """Read access to projector states for the API."""

    def __init__(self, read_models: IReadModelStore, projectors: Sequence[Projector]):
        self._read_models = read_models
        self._projectors = {p.name: p for p in projectors}

    def projector(self, name: str) -> Projector:
        projector = self._projectors.get(name)
        if projector is None:
            raise ResourceNotFoundException("Projector", name)
        return projector

    async def get_state(self, projector_name: str, aggregate_id: str) -> Any:
        projector = self.projector(projector_name)
        stored = await self._read_models.get(projector_name, aggregate_id)
        if stored is None:
            raise ResourceNotFoundException(f"{projector_name} read model", aggregate_id)
        return projector.deserialize(stored.data)

    async def list_states(self, projector_name: str, limit: Optional[int] = None, offset: int = 0) -> List[Any]:
        projector = self.projector(projector_name)
        stored = await self._read_models.list(projector_name, limit=limit, offset=offset)
        return [projector.deserialize(s.data) for s in stored]
