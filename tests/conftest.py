"""Shared fixtures: in-memory stores, a file-backed SQLite session and fixed clocks."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import momentum.command_center.infrastructure.models  # noqa: F401
import momentum.events.infrastructure.models  # noqa: F401
import momentum.projections.infrastructure.models  # noqa: F401
from momentum.command_center.infrastructure import (
    InMemoryAttentionFlagRepository,
    InMemoryCommandCenterRepository,
)
from momentum.events.infrastructure.memory import InMemoryEventStore
from momentum.infrastructure.database import Base, enable_sqlite_savepoints
from momentum.projections.infrastructure.memory import (
    InMemoryCheckpointRepository,
    InMemoryReadModelStore,
)
from momentum.sla.domain import SLAConfig

# Tuesday
NOW = datetime(2026, 1, 6, 15, 0, tzinfo=timezone.utc)

STAGES = [
    {"stage_id": "kickoff", "name": "Kickoff", "stage_order": 1, "sla_days": 3, "sla_warning_days": 2},
    {"stage_id": "configuration", "name": "Configuration", "stage_order": 2, "sla_days": 10, "sla_warning_days": 7},
    {"stage_id": "training", "name": "Training", "stage_order": 3, "sla_days": 5, "sla_warning_days": 4},
]


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def checkpoints() -> InMemoryCheckpointRepository:
    return InMemoryCheckpointRepository()


@pytest.fixture
def read_models() -> InMemoryReadModelStore:
    return InMemoryReadModelStore()


@pytest.fixture
def item_repo() -> InMemoryCommandCenterRepository:
    return InMemoryCommandCenterRepository()


@pytest.fixture
def flag_repo() -> InMemoryAttentionFlagRepository:
    return InMemoryAttentionFlagRepository()


@pytest.fixture
def sla_config() -> SLAConfig:
    return SLAConfig(stages=STAGES)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")

    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncSession:
    maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with maker() as session:
        yield session
        await session.rollback()
