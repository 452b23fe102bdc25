"""Pydantic response models for ranking endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class RankingEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rank: int
    user_id: int
    score: int
    period_score: int
    total_predictions: int
    success_predictions: int
    win_rate: float
    avg_return: float
    max_return: float
    current_streak: int
    max_streak: int
    previous_rank: int | None = None
    rank_change: int = 0
    badge: str | None = None


class RankingListResponse(BaseModel):
    ranking_type: str
    period: str
    entries: list[RankingEntryResponse]
    total: int
    page: int
    limit: int


class UserRankingResponse(RankingEntryResponse):
    ranking_type: str
    period: str
    period_start: datetime | None = None
    period_end: datetime | None = None


class RankingHistoryEntry(BaseModel):
    period: str
    participants: int
    top_score: int | None = None
    avg_score: float
    period_start: datetime | None = None
    period_end: datetime | None = None
    calculated_at: datetime | None = None


class RankingHistoryResponse(BaseModel):
    ranking_type: str
    periods: list[RankingHistoryEntry]


class RankingTrendPoint(BaseModel):
    period: str
    rank: int
    previous_rank: int | None = None
    rank_change: int
    score: int
    win_rate: float
    badge: str | None = None


class RankingTrendResponse(BaseModel):
    user_id: int
    ranking_type: str
    points: list[RankingTrendPoint]


class ChampionResponse(BaseModel):
    user_id: int
    score: int
    badge: str | None = None


class RankingTypeStats(BaseModel):
    period: str
    participants: int
    champion: ChampionResponse | None = None


class RankingStatsResponse(BaseModel):
    weekly: RankingTypeStats
    monthly: RankingTypeStats
    total: RankingTypeStats


class CalculateRequest(BaseModel):
    ranking_type: str
    period: str | None = None


class CalculateResponse(BaseModel):
    ranking_type: str
    period: str
    rows: int
