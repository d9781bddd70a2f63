import asyncio
import sqlite3
from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from momentum import cli
from momentum.command_center.infrastructure.models import EmailMessageModel, UserModel
from momentum.config import settings
from momentum.infrastructure.database import Base


async def seed(url: str, with_user: bool = True) -> None:
    import momentum.events.infrastructure.models  # noqa: F401
    import momentum.projections.infrastructure.models  # noqa: F401

    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_sessionmaker(bind=engine)() as session:
        if with_user:
            session.add(UserModel(id="u-1", email="rep@ourco.com", auth_id="auth-1"))
        session.add(EmailMessageModel(
            id="e-1",
            from_email="pat@acme.com",
            received_at=datetime(2026, 1, 6, 14, 0, tzinfo=timezone.utc),
            analysis_complete=True,
            ai_analysis={"required_actions": [{"action": "Reply with times"}]},
        ))
        await session.commit()
    await engine.dispose()


@pytest.fixture
def database(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path}/cli.db"
    monkeypatch.setattr(settings, "database_url", url)
    monkeypatch.setattr(settings, "mock_llm", True)
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    return url


def test_missing_database_url(monkeypatch, capsys):
    monkeypatch.setattr(settings, "database_url", None)
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)

    assert cli.main([]) == 1
    assert "DATABASE_URL" in capsys.readouterr().err


def test_negative_limit(database, capsys):
    assert cli.main(["--limit=-1"]) == 1
    assert "--limit" in capsys.readouterr().err


def test_check_only_prints_inventory(database, capsys):
    asyncio.run(seed(database))

    assert cli.main(["--check"]) == 0

    out = capsys.readouterr().out
    assert "DATA INVENTORY" in out
    assert "Active items:        0" in out
    assert "REGENERATION SUMMARY" not in out


def test_check_on_an_empty_database_creates_nothing(database, tmp_path, capsys):
    assert cli.main(["--check"]) == 1

    assert "missing tables" in capsys.readouterr().err
    with sqlite3.connect(tmp_path / "cli.db") as conn:
        tables = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    assert tables == []


def test_run_is_idempotent(database, capsys):
    asyncio.run(seed(database))

    assert cli.main([]) == 0
    assert "Items created:       1" in capsys.readouterr().out

    assert cli.main([]) == 0
    out = capsys.readouterr().out
    assert "Items created:       0" in out
    assert "Duplicates skipped:  1" in out


def test_reanalyze_uses_the_llm(database, capsys):
    asyncio.run(seed(database))

    assert cli.main(["--reanalyze"]) == 0

    out = capsys.readouterr().out
    assert "Run with --reanalyze" in out
    assert "'reclassified': 1" in out


def test_missing_user_fails(database, capsys):
    asyncio.run(seed(database, with_user=False))

    assert cli.main([]) == 1
    assert "Error:" in capsys.readouterr().err
