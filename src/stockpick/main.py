"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stockpick.config import get_settings
from stockpick.container import build_services
from stockpick.database import create_engine
from stockpick.health.router import router as health_router
from stockpick.middleware import setup_middleware
from stockpick.predictions.router import router as predictions_router
from stockpick.rankings.router import router as rankings_router
from stockpick.redis_client import create_redis


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    engine = create_engine(settings.database_url)
    redis = create_redis(settings.redis_url)
    app.state.services = build_services(settings, engine, redis)

    yield

    price_source = app.state.services.price_source
    if price_source is not None and hasattr(price_source, "aclose"):
        await price_source.aclose()
    await redis.aclose()
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Stockpick API",
        description="Scoring and ranking engine for the stock prediction contest",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(rankings_router)
    app.include_router(predictions_router)

    return app


app = create_app()
