"""Pydantic models for prediction endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SettleRequest(BaseModel):
    exit_price: float | None = Field(None, gt=0)


class PredictionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    symbol: str
    predicted_change: float
    hold_period: str
    status: str
    entry_price: float
    current_price: float | None = None
    current_return: float | None = None
    exit_price: float | None = None
    actual_return: float | None = None
    start_date: datetime
    end_date: datetime
    settled_at: datetime | None = None
    follow_count: int


class ExpiryReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    checked: int
    settled: int
    missing_price: int
    failed: int
    failed_ids: list[int]
