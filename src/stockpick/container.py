"""Explicit service wiring, done once per process.

The FastAPI lifespan stores the result on ``app.state.services``; the arq
worker keeps it in its job context.
"""

from __future__ import annotations

from dataclasses import dataclass
from zoneinfo import ZoneInfo

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncEngine

from stockpick.config import Settings
from stockpick.database import create_session_factory
from stockpick.follows.service import FollowService
from stockpick.predictions.service import SettlementService
from stockpick.prices.refresh import PriceRefresher
from stockpick.prices.source import HttpPriceSource, PriceSource
from stockpick.rankings.lock import RankingRunGuard
from stockpick.rankings.service import RankingService
from stockpick.repositories.follows_orm import SqlFollowRepository
from stockpick.repositories.predictions_orm import SqlPredictionRepository
from stockpick.repositories.rankings_orm import SqlRankingRepository
from stockpick.repositories.stocks_orm import SqlStockRepository
from stockpick.repositories.users_orm import SqlUserRepository


@dataclass
class Services:
    settlement: SettlementService
    rankings: RankingService
    follows: FollowService
    prices: PriceRefresher | None
    price_source: PriceSource | None


def build_services(
    settings: Settings,
    engine: AsyncEngine,
    redis: aioredis.Redis,
    price_source: PriceSource | None = None,
) -> Services:
    """Build every service over one engine and one Redis client.

    Without an explicit ``price_source`` an HTTP source is created when
    ``settings.price_source_url`` is set; otherwise price refresh is disabled.
    """
    session_factory = create_session_factory(engine)
    users = SqlUserRepository(session_factory)
    stocks = SqlStockRepository(session_factory)
    predictions = SqlPredictionRepository(session_factory)
    follows = SqlFollowRepository(session_factory)
    rankings = SqlRankingRepository(session_factory)

    if price_source is None and settings.price_source_url:
        price_source = HttpPriceSource(settings.price_source_url, timeout=settings.price_fetch_timeout_seconds)

    refresher = None
    if price_source is not None:
        refresher = PriceRefresher(
            price_source,
            stocks,
            predictions,
            follows,
            concurrency=settings.price_refresh_concurrency,
            timeout=settings.price_fetch_timeout_seconds,
        )

    return Services(
        settlement=SettlementService(predictions, users, stocks, follows),
        rankings=RankingService(
            users,
            predictions,
            rankings,
            RankingRunGuard(redis, ttl_seconds=settings.ranking_lock_ttl_seconds),
            tz=ZoneInfo(settings.timezone),
            streak_window=settings.ranking_streak_window,
        ),
        follows=FollowService(
            follows, predictions, stocks, users, default_amount=settings.default_follow_amount,
        ),
        prices=refresher,
        price_source=price_source,
    )
