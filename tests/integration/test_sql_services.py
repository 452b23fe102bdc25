"""Services wired to the SQLAlchemy repositories."""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from stockpick.db.models import FOLLOW_ACTIVE, Follow
from stockpick.follows.service import FollowService
from stockpick.predictions.service import SettlementService

from fakes import make_prediction, make_stock, make_user

SYMBOL = "600519"


@pytest_asyncio.fixture
async def market(seed):
    await seed(make_user(1), make_user(2), make_stock(SYMBOL, 100.0), make_stock("000001", 10.0))
    await seed(
        make_prediction(101, 1),
        make_prediction(102, 1, symbol="000001", entry_price=10.0, current_price=10.0),
    )


@pytest.fixture
def sql_settlement(sql_predictions, sql_users, sql_stocks, sql_follows, clock) -> SettlementService:
    return SettlementService(sql_predictions, sql_users, sql_stocks, sql_follows, clock=clock)


@pytest.fixture
def sql_follow_service(sql_follows, sql_predictions, sql_stocks, sql_users, clock) -> FollowService:
    return FollowService(sql_follows, sql_predictions, sql_stocks, sql_users, clock=clock)


class TestSettlementOnPostgres:
    @pytest.mark.asyncio
    async def test_concurrent_settlements_for_one_user_both_count(self, market, sql_settlement, sql_users, sql_stocks):
        await asyncio.gather(
            sql_settlement.settle(101, exit_price=110.0),
            sql_settlement.settle(102, exit_price=9.0),
        )

        user = await sql_users.get(1)
        assert (user.total_predictions, user.success_predictions, user.failed_predictions) == (2, 1, 1)
        stock = await sql_stocks.get(SYMBOL)
        assert (stock.recommend_count, stock.success_rate, stock.avg_return) == (1, 1.0, 10.0)


class TestFollowsOnPostgres:
    @pytest.mark.asyncio
    async def test_follow_again_after_unfollow_reuses_the_row(
        self, market, session_factory, sql_follow_service, sql_predictions,
    ):
        first = await sql_follow_service.follow_prediction(2, 101)
        await sql_follow_service.unfollow_prediction(2, 101)
        again = await sql_follow_service.follow_prediction(2, 101)

        assert again.id == first.id
        assert again.status == FOLLOW_ACTIVE
        assert again.completed_at is None
        async with session_factory() as session:
            rows = (await session.execute(
                select(func.count(Follow.id)).where(Follow.follower_id == 2)
            )).scalar_one()
        assert rows == 1
        assert (await sql_predictions.get(101)).follow_count == 1
