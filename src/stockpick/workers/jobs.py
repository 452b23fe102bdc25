"""arq worker for price refresh, settlement and ranking recomputation.

Each job builds nothing itself: services come from the context populated in
``startup``. Cadence is set at deploy time, e.g.:

- refresh_prices: every minute during market hours
- roll_previous_close: once per trading day before the open
- settle_expired_predictions: every 10 minutes
- calculate_weekly_rankings: every 5 minutes
- calculate_monthly_rankings / calculate_total_rankings: hourly
"""

from __future__ import annotations

import logging

from stockpick.config import get_settings
from stockpick.container import Services, build_services
from stockpick.database import create_engine
from stockpick.exceptions import ConcurrencyConflictError
from stockpick.middleware.logging import setup_logging
from stockpick.rankings.periods import MONTHLY, TOTAL, WEEKLY
from stockpick.redis_client import create_redis

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database engine and Redis client, wire the services."""
    settings = get_settings()
    setup_logging(settings)
    engine = create_engine(settings.database_url, pool_size=5)
    redis_client = create_redis(settings.redis_url, max_connections=20)

    ctx["engine"] = engine
    ctx["redis_client"] = redis_client
    ctx["services"] = build_services(settings, engine, redis_client)
    logger.info("Stockpick worker started (environment=%s)", settings.environment)


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    services: Services | None = ctx.get("services")
    if services is not None and services.price_source is not None and hasattr(services.price_source, "aclose"):
        await services.price_source.aclose()

    redis_client = ctx.get("redis_client")
    if redis_client is not None:
        await redis_client.aclose()

    engine = ctx.get("engine")
    if engine is not None:
        await engine.dispose()

    logger.info("Stockpick worker shut down")


async def refresh_prices(ctx: dict) -> int:  # type: ignore[type-arg]
    """Refresh quotes and mark open predictions and follows to market."""
    services: Services = ctx["services"]
    if services.prices is None:
        logger.warning("Price refresh skipped: no price source configured")
        return 0
    try:
        report = await services.prices.refresh_prices()
        return report.updated
    except Exception:
        logger.exception("Price refresh failed")
        return 0


async def roll_previous_close(ctx: dict) -> int:  # type: ignore[type-arg]
    """Carry the last price into previous_close before the market opens."""
    services: Services = ctx["services"]
    if services.prices is None:
        logger.warning("Previous close roll skipped: no price source configured")
        return 0
    try:
        return await services.prices.roll_previous_close()
    except Exception:
        logger.exception("Previous close roll failed")
        return 0


async def settle_expired_predictions(ctx: dict) -> int:  # type: ignore[type-arg]
    """Settle predictions whose hold period has ended."""
    services: Services = ctx["services"]
    try:
        report = await services.settlement.settle_expired()
        return report.settled
    except Exception:
        logger.exception("Expired prediction settlement failed")
        return 0


async def _calculate(ctx: dict, ranking_type: str) -> int:  # type: ignore[type-arg]
    services: Services = ctx["services"]
    try:
        snapshots = await services.rankings.calculate_rankings(ranking_type)
        return len(snapshots)
    except ConcurrencyConflictError:
        logger.info("Skipping %s ranking: another run is in progress", ranking_type)
        return 0
    except Exception:
        logger.exception("%s ranking calculation failed", ranking_type.capitalize())
        return 0


async def calculate_weekly_rankings(ctx: dict) -> int:  # type: ignore[type-arg]
    return await _calculate(ctx, WEEKLY)


async def calculate_monthly_rankings(ctx: dict) -> int:  # type: ignore[type-arg]
    return await _calculate(ctx, MONTHLY)


async def calculate_total_rankings(ctx: dict) -> int:  # type: ignore[type-arg]
    return await _calculate(ctx, TOTAL)


class WorkerSettings:
    """arq worker settings for the contest scheduler."""

    functions = [
        refresh_prices,
        roll_previous_close,
        settle_expired_predictions,
        calculate_weekly_rankings,
        calculate_monthly_rankings,
        calculate_total_rankings,
    ]
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = 4
    job_timeout = 300
    allow_abort_jobs = True
    # cron_jobs would be configured here for production:
    # cron_jobs = [
    #     cron(refresh_prices, second={0}),
    #     cron(roll_previous_close, weekday={0, 1, 2, 3, 4}, hour={1}, minute={0}),
    #     cron(settle_expired_predictions, minute={0, 10, 20, 30, 40, 50}),
    #     cron(calculate_weekly_rankings, minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55}),
    #     cron(calculate_monthly_rankings, minute=0),
    #     cron(calculate_total_rankings, minute=30),
    # ]
