"""Fixtures for repository tests against a migrated PostgreSQL database.

The database comes from ``SPK_DATABASE_URL``. ``alembic upgrade head`` runs
once per test session and every test starts from empty tables. When the
server is unreachable the tests are skipped.
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from stockpick.config import get_settings
from stockpick.database import create_engine, create_session_factory
from stockpick.repositories.follows_orm import SqlFollowRepository
from stockpick.repositories.predictions_orm import SqlPredictionRepository
from stockpick.repositories.rankings_orm import SqlRankingRepository
from stockpick.repositories.stocks_orm import SqlStockRepository
from stockpick.repositories.users_orm import SqlUserRepository

PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONTEST_TABLES = "ranking_snapshots, follows, predictions, stocks, users"

_migrated = False


def _ensure_migrations() -> None:
    """Apply Alembic migrations once. Runs synchronously."""
    global _migrated
    if _migrated:
        return
    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        cwd=PROJECT_ROOT,
        check=True,
        capture_output=True,
    )
    _migrated = True


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    get_settings.cache_clear()
    db_engine = create_engine(get_settings().database_url, pool_size=5)
    try:
        async with db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        await db_engine.dispose()
        pytest.skip(f"PostgreSQL not reachable: {exc}")

    _ensure_migrations()
    async with db_engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE TABLE {CONTEST_TABLES} RESTART IDENTITY CASCADE"))

    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]) -> Callable[..., Awaitable[None]]:
    """Insert ORM objects in one committed transaction."""

    async def _seed(*objects: Any) -> None:
        async with session_factory() as session, session.begin():
            session.add_all(objects)

    return _seed


@pytest.fixture
def sql_users(session_factory) -> SqlUserRepository:
    return SqlUserRepository(session_factory)


@pytest.fixture
def sql_stocks(session_factory) -> SqlStockRepository:
    return SqlStockRepository(session_factory)


@pytest.fixture
def sql_predictions(session_factory) -> SqlPredictionRepository:
    return SqlPredictionRepository(session_factory)


@pytest.fixture
def sql_follows(session_factory) -> SqlFollowRepository:
    return SqlFollowRepository(session_factory)


@pytest.fixture
def sql_rankings(session_factory) -> SqlRankingRepository:
    return SqlRankingRepository(session_factory)
