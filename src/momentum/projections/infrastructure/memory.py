"""In-memory checkpoint and read model stores."""

import copy
from typing import Any, Dict, List, Optional, Tuple

from momentum.projections.application.services import ICheckpointRepository, IReadModelStore
from momentum.projections.domain import ProjectorCheckpoint, StoredReadModel
from momentum.shared.timeutils import utc_now


class InMemoryCheckpointRepository(ICheckpointRepository):

    def __init__(self) -> None:
        self._checkpoints: Dict[str, ProjectorCheckpoint] = {}

    async def get(self, projector_name: str) -> Optional[ProjectorCheckpoint]:
        checkpoint = self._checkpoints.get(projector_name)
        return copy.deepcopy(checkpoint) if checkpoint else None

    async def save(self, checkpoint: ProjectorCheckpoint) -> None:
        self._checkpoints[checkpoint.projector_name] = copy.deepcopy(checkpoint)

    async def list_all(self) -> List[ProjectorCheckpoint]:
        return [copy.deepcopy(c) for c in self._checkpoints.values()]


class InMemoryReadModelStore(IReadModelStore):

    def __init__(self) -> None:
        self._rows: Dict[Tuple[str, str], StoredReadModel] = {}

    async def get(self, projector_name: str, aggregate_id: str) -> Optional[StoredReadModel]:
        return self._rows.get((projector_name, aggregate_id))

    async def save(
        self,
        projector_name: str,
        aggregate_type: str,
        aggregate_id: str,
        data: Dict[str, Any],
        projection_version: int
    ) -> None:
        self._rows[(projector_name, aggregate_id)] = StoredReadModel(
            projector_name=projector_name,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            data=copy.deepcopy(data),
            projection_version=projection_version,
            projected_at=utc_now(),
        )

    async def list(
        self,
        projector_name: str,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[StoredReadModel]:
        rows = [r for (name, _), r in sorted(self._rows.items()) if name == projector_name]
        rows = rows[offset:]
        return rows[:limit] if limit is not None else rows

    async def clear(self, projector_name: str) -> int:
        keys = [k for k in self._rows if k[0] == projector_name]
        for key in keys:
            del self._rows[key]
        return len(keys)
