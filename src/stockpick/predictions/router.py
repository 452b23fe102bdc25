"""Operational prediction endpoints (admin only)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from stockpick.dependencies import get_settlement_service, require_admin
from stockpick.predictions.schemas import ExpiryReportResponse, PredictionResponse, SettleRequest
from stockpick.predictions.service import SettlementService

router = APIRouter(prefix="/api/v1", tags=["Predictions"], dependencies=[Depends(require_admin)])


@router.post("/predictions/check-expired", response_model=ExpiryReportResponse)
async def check_expired(service: SettlementService = Depends(get_settlement_service)):
    """Settle every prediction whose hold period has ended."""
    report = await service.settle_expired()
    return ExpiryReportResponse.model_validate(report)


@router.post("/predictions/{prediction_id}/settle", response_model=PredictionResponse)
async def settle_prediction(
    prediction_id: int,
    body: SettleRequest | None = None,
    service: SettlementService = Depends(get_settlement_service),
):
    """Settle one prediction, optionally at an explicit exit price."""
    prediction = await service.settle(prediction_id, body.exit_price if body else None)
    return PredictionResponse.model_validate(prediction)
