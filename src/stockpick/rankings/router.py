"""Ranking API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from stockpick.dependencies import get_ranking_service, require_admin
from stockpick.exceptions import NotFoundError
from stockpick.rankings.periods import WEEKLY
from stockpick.rankings.schemas import (
    CalculateRequest,
    CalculateResponse,
    RankingEntryResponse,
    RankingHistoryEntry,
    RankingHistoryResponse,
    RankingListResponse,
    RankingStatsResponse,
    RankingTrendPoint,
    RankingTrendResponse,
    UserRankingResponse,
)
from stockpick.rankings.service import RankingService

router = APIRouter(prefix="/api/v1", tags=["Rankings"])


# ── Static paths first so they are not captured by /rankings/{ranking_type} ──


@router.get("/rankings/stats", response_model=RankingStatsResponse)
async def get_ranking_stats(service: RankingService = Depends(get_ranking_service)):
    """Participants and champion of every current period."""
    return RankingStatsResponse(**await service.get_ranking_stats())


@router.get("/rankings/users/{user_id}/trend", response_model=RankingTrendResponse)
async def get_user_trend(
    user_id: int,
    ranking_type: str = Query(WEEKLY, alias="type"),
    limit: int = Query(12, ge=1, le=52),
    service: RankingService = Depends(get_ranking_service),
):
    """Rank per period for one user, oldest first."""
    points = await service.get_user_ranking_trend(user_id, ranking_type, limit)
    return RankingTrendResponse(
        user_id=user_id,
        ranking_type=ranking_type,
        points=[RankingTrendPoint(**p) for p in points],
    )


@router.post("/rankings/calculate", response_model=CalculateResponse, dependencies=[Depends(require_admin)])
async def calculate_rankings(
    body: CalculateRequest,
    service: RankingService = Depends(get_ranking_service),
):
    """Recompute one period's snapshot now."""
    period = service.resolve_period(body.ranking_type, body.period)
    snapshots = await service.calculate_rankings(body.ranking_type, period)
    return CalculateResponse(ranking_type=body.ranking_type, period=period, rows=len(snapshots))


@router.get("/rankings/{ranking_type}", response_model=RankingListResponse)
async def get_ranking_list(
    ranking_type: str,
    period: str | None = Query(None, description="2024-W11, 2024-03 or total"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    service: RankingService = Depends(get_ranking_service),
):
    """One page of a leaderboard, ordered by rank."""
    result = await service.get_ranking_list(ranking_type, period, limit=limit, offset=(page - 1) * limit)
    return RankingListResponse(
        ranking_type=result.ranking_type,
        period=result.period,
        entries=[RankingEntryResponse.model_validate(s) for s in result.items],
        total=result.total,
        page=page,
        limit=limit,
    )


@router.get("/rankings/{ranking_type}/history", response_model=RankingHistoryResponse)
async def get_ranking_history(
    ranking_type: str,
    limit: int = Query(12, ge=1, le=52),
    service: RankingService = Depends(get_ranking_service),
):
    history = await service.get_ranking_history(ranking_type, limit)
    return RankingHistoryResponse(
        ranking_type=ranking_type,
        periods=[RankingHistoryEntry(**entry) for entry in history],
    )


@router.get("/rankings/{ranking_type}/users/{user_id}", response_model=UserRankingResponse)
async def get_user_ranking(
    ranking_type: str,
    user_id: int,
    period: str | None = Query(None),
    service: RankingService = Depends(get_ranking_service),
):
    snapshot = await service.get_user_ranking(user_id, ranking_type, period)
    if snapshot is None:
        raise NotFoundError(
            f"User {user_id} has no {ranking_type} ranking",
            details={"user_id": user_id, "ranking_type": ranking_type, "period": period},
        )
    return UserRankingResponse.model_validate(snapshot)
