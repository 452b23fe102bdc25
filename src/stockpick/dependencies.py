"""Shared FastAPI dependencies."""

import hmac

from fastapi import Header, HTTPException, Request

from stockpick.config import get_settings
from stockpick.container import Services
from stockpick.predictions.service import SettlementService
from stockpick.rankings.service import RankingService


def get_services(request: Request) -> Services:
    """Services built by the application lifespan."""
    return request.app.state.services


def get_settlement_service(request: Request) -> SettlementService:
    return get_services(request).settlement


def get_ranking_service(request: Request) -> RankingService:
    return get_services(request).rankings


async def require_admin(x_admin_token: str | None = Header(None)) -> None:
    """Shared-secret check for operational routes."""
    expected = get_settings().admin_token
    if not expected or x_admin_token is None or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=403, detail="Admin token required")
