"""Shared test fixtures.

Services run against the in-memory fakes in ``fakes.py``; no database or
Redis server is needed.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fakes import (
    ADMIN_TOKEN,
    FakeFollowRepository,
    FakePredictionRepository,
    FakeRankingRepository,
    FakeRedis,
    FakeStockRepository,
    FakeStore,
    FakeUserRepository,
    FrozenClock,
)
from stockpick.config import get_settings
from stockpick.container import Services
from stockpick.follows.service import FollowService
from stockpick.predictions.service import SettlementService
from stockpick.rankings.lock import RankingRunGuard
from stockpick.rankings.service import RankingService


@pytest.fixture
def clock() -> FrozenClock:
    """Friday 2024-03-15 12:00 UTC (20:00 in Shanghai), week 2024-W11."""
    return FrozenClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def users(store: FakeStore) -> FakeUserRepository:
    return FakeUserRepository(store)


@pytest.fixture
def stocks(store: FakeStore) -> FakeStockRepository:
    return FakeStockRepository(store)


@pytest.fixture
def predictions(store: FakeStore) -> FakePredictionRepository:
    return FakePredictionRepository(store)


@pytest.fixture
def follows(store: FakeStore) -> FakeFollowRepository:
    return FakeFollowRepository(store)


@pytest.fixture
def rankings(store: FakeStore, clock: FrozenClock) -> FakeRankingRepository:
    return FakeRankingRepository(store, clock)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def settlement_service(predictions, users, stocks, follows, clock) -> SettlementService:
    return SettlementService(predictions, users, stocks, follows, clock=clock)


@pytest.fixture
def ranking_service(users, predictions, rankings, fake_redis, clock) -> RankingService:
    return RankingService(users, predictions, rankings, RankingRunGuard(fake_redis, ttl_seconds=60), clock=clock)


@pytest.fixture
def follow_service(follows, predictions, stocks, users, clock) -> FollowService:
    return FollowService(follows, predictions, stocks, users, clock=clock)


@pytest.fixture
def admin_token(monkeypatch: pytest.MonkeyPatch) -> Iterator[str]:
    monkeypatch.setenv("SPK_ADMIN_TOKEN", ADMIN_TOKEN)
    get_settings.cache_clear()
    yield ADMIN_TOKEN
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def client(
    admin_token: str,
    settlement_service: SettlementService,
    ranking_service: RankingService,
    follow_service: FollowService,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app with fake-backed services (lifespan not run)."""
    from stockpick.main import create_app

    app = create_app()
    app.state.services = Services(
        settlement=settlement_service,
        rankings=ranking_service,
        follows=follow_service,
        prices=None,
        price_source=None,
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
