"""
Projection Repositories
=======================

SQLAlchemy implementations of the checkpoint and read model stores.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from momentum.projections.application.services import ICheckpointRepository, IReadModelStore
from momentum.projections.domain import ProjectorCheckpoint, StoredReadModel
from momentum.projections.infrastructure.models import ProjectorCheckpointModel, ReadModelRecord
from momentum.shared.timeutils import ensure_utc, utc_now


class SQLAlchemyCheckpointRepository(ICheckpointRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: ProjectorCheckpointModel) -> ProjectorCheckpoint:
        return ProjectorCheckpoint(
            projector_name=model.projector_name,
            last_processed_global_sequence=model.last_processed_global_sequence,
            last_processed_event_id=model.last_processed_event_id,
            last_processed_at=ensure_utc(model.last_processed_at),
            events_processed_count=model.events_processed_count,
            errors_count=model.errors_count,
            last_error=model.last_error,
            last_error_at=ensure_utc(model.last_error_at),
            status=model.status,
        )

    async def get(self, projector_name: str) -> Optional[ProjectorCheckpoint]:
        model = await self._session.get(ProjectorCheckpointModel, projector_name)
        return self._to_entity(model) if model else None

    async def save(self, checkpoint: ProjectorCheckpoint) -> None:
        model = await self._session.get(ProjectorCheckpointModel, checkpoint.projector_name)
        if model is None:
            model = ProjectorCheckpointModel(projector_name=checkpoint.projector_name)
            self._session.add(model)

        model.last_processed_global_sequence = checkpoint.last_processed_global_sequence
        model.last_processed_event_id = checkpoint.last_processed_event_id
        model.last_processed_at = checkpoint.last_processed_at
        model.events_processed_count = checkpoint.events_processed_count
        model.errors_count = checkpoint.errors_count
        model.last_error = checkpoint.last_error
        model.last_error_at = checkpoint.last_error_at
        model.status = checkpoint.status
        await self._session.flush()

    async def list_all(self) -> List[ProjectorCheckpoint]:
        result = await self._session.execute(
            select(ProjectorCheckpointModel).order_by(ProjectorCheckpointModel.projector_name)
        )
        return [self._to_entity(m) for m in result.scalars().all()]


class SQLAlchemyReadModelStore(IReadModelStore):

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: ReadModelRecord) -> StoredReadModel:
        return StoredReadModel(
            projector_name=model.projector_name,
            aggregate_type=model.aggregate_type,
            aggregate_id=model.aggregate_id,
            data=dict(model.data or {}),
            projection_version=model.projection_version,
            projected_at=ensure_utc(model.projected_at),
        )

    async def get(self, projector_name: str, aggregate_id: str) -> Optional[StoredReadModel]:
        model = await self._session.get(ReadModelRecord, (projector_name, aggregate_id))
        return self._to_entity(model) if model else None

    async def save(
        self,
        projector_name: str,
        aggregate_type: str,
        aggregate_id: str,
        data: Dict[str, Any],
        projection_version: int
    ) -> None:
        model = await self._session.get(ReadModelRecord, (projector_name, aggregate_id))
        if model is None:
            model = ReadModelRecord(
                projector_name=projector_name,
                aggregate_id=aggregate_id,
                aggregate_type=aggregate_type,
            )
            self._session.add(model)

        model.data = data
        model.projection_version = projection_version
        model.projected_at = utc_now()
        await self._session.flush()

    async def list(
        self,
        projector_name: str,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[StoredReadModel]:
        stmt = (
            select(ReadModelRecord)
            .where(ReadModelRecord.projector_name == projector_name)
            .order_by(ReadModelRecord.aggregate_id)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def clear(self, projector_name: str) -> int:
        result = await self._session.execute(
            delete(ReadModelRecord).where(ReadModelRecord.projector_name == projector_name)
        )
        await self._session.flush()
        return result.rowcount or 0
