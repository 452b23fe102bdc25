"""Pure settlement rules for a single prediction.

No I/O here: the service layer loads and locks rows, calls these helpers, and
persists the result.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta

from stockpick.db.models import (
    HOLD_PERIODS,
    PREDICTION_ACTIVE,
    PREDICTION_FAILED,
    PREDICTION_SUCCESS,
    Prediction,
)
from stockpick.exceptions import InvalidStateError, MissingPriceError

RETURN_PRECISION = 4


def compute_return(price: float, base_price: float) -> float:
    """Percentage change from ``base_price`` to ``price``."""
    return round((price - base_price) / base_price * 100, RETURN_PRECISION)


def direction(change: float) -> str:
    """'up' for strictly positive change, 'down' otherwise (flat counts as down)."""
    return "up" if change > 0 else "down"


def accuracy_score(actual_return: float, predicted_change: float) -> float:
    """100 minus the absolute miss in percentage points. Informational only."""
    return round(100 - abs(actual_return - predicted_change), RETURN_PRECISION)


@dataclass(frozen=True)
class SettlementOutcome:
    status: str
    exit_price: float
    actual_return: float
    accuracy: float

    @property
    def success(self) -> bool:
        return self.status == PREDICTION_SUCCESS


def decide_outcome(prediction: Prediction, exit_price: float | None = None) -> SettlementOutcome:
    """Decide success/failed for ``prediction`` against the final price.

    The final price is ``exit_price`` when given, else the last refreshed
    price. A direction match is a success regardless of magnitude.
    """
    final_price = exit_price or prediction.current_price
    if not final_price:
        raise MissingPriceError(
            f"Prediction {prediction.id} has no exit price and no current price",
            details={"prediction_id": prediction.id},
        )

    actual_return = compute_return(final_price, prediction.entry_price)
    matched = direction(prediction.predicted_change) == direction(actual_return)
    return SettlementOutcome(
        status=PREDICTION_SUCCESS if matched else PREDICTION_FAILED,
        exit_price=final_price,
        actual_return=actual_return,
        accuracy=accuracy_score(actual_return, prediction.predicted_change),
    )


def ensure_active(prediction: Prediction) -> None:
    if prediction.status != PREDICTION_ACTIVE:
        raise InvalidStateError(
            f"Prediction {prediction.id} is {prediction.status}, not active",
            details={"prediction_id": prediction.id, "status": prediction.status},
        )


def apply_outcome(prediction: Prediction, outcome: SettlementOutcome, now: datetime) -> None:
    """Write a settlement outcome onto an active prediction."""
    ensure_active(prediction)
    prediction.exit_price = outcome.exit_price
    prediction.actual_return = outcome.actual_return
    prediction.settled_at = now
    prediction.status = outcome.status
    prediction.updated_at = now


def close_without_outcome(prediction: Prediction, status: str, now: datetime) -> None:
    """Move an active prediction to a terminal status that earns no score.

    Used for cancellation and forced expiry. The exit is stamped from the
    last known price so that only active predictions lack an exit.
    """
    ensure_active(prediction)
    final_price = prediction.current_price or prediction.entry_price
    prediction.exit_price = final_price
    prediction.actual_return = compute_return(final_price, prediction.entry_price)
    prediction.settled_at = now
    prediction.status = status
    prediction.updated_at = now


def apply_current_price(prediction: Prediction, current_price: float, now: datetime | None = None) -> None:
    """Mark-to-market an active prediction; no status change."""
    ensure_active(prediction)
    prediction.current_price = current_price
    prediction.current_return = compute_return(current_price, prediction.entry_price)
    if now is not None:
        prediction.updated_at = now


def is_expired(prediction: Prediction, now: datetime) -> bool:
    return prediction.status == PREDICTION_ACTIVE and now > prediction.end_date


def _add_months(start: datetime, months: int) -> datetime:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def hold_period_end(start: datetime, hold_period: str) -> datetime:
    """End instant for a prediction opened at ``start``."""
    if hold_period == "1week":
        return start + timedelta(days=7)
    if hold_period == "2weeks":
        return start + timedelta(days=14)
    if hold_period == "1month":
        return _add_months(start, 1)
    if hold_period == "3months":
        return _add_months(start, 3)
    raise ValueError(f"Unknown hold period: {hold_period} (expected one of {HOLD_PERIODS})")
