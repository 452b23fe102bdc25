"""Prediction lifecycle: creation, mark-to-market, settlement and expiry.

Settlement is the only path that touches user statistics. The prediction
row is locked for the status change; the author, stock and follow updates
run afterwards as separate units of work and never undo the settlement.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from stockpick.db.models import (
    HOLD_PERIODS,
    PREDICTION_ACTIVE,
    PREDICTION_CANCELLED,
    PREDICTION_EXPIRED,
    STOCK_ACTIVE,
    USER_ACTIVE,
    Prediction,
    User,
)
from stockpick.exceptions import (
    AppException,
    InvalidStateError,
    MissingPriceError,
    NotFoundError,
)
from stockpick.predictions.settlement import (
    SettlementOutcome,
    apply_current_price,
    apply_outcome,
    close_without_outcome,
    decide_outcome,
    ensure_active,
    hold_period_end,
    is_expired,
)
from stockpick.repositories.interfaces import (
    FollowRepository,
    PredictionRepository,
    StockRepository,
    UserRepository,
)
from stockpick.scoring import stats

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExpiryReport:
    """Result of one pass over expired predictions."""

    checked: int = 0
    settled: int = 0
    missing_price: int = 0
    failed: int = 0
    failed_ids: list[int] = field(default_factory=list)


class SettlementService:
    def __init__(
        self,
        predictions: PredictionRepository,
        users: UserRepository,
        stocks: StockRepository,
        follows: FollowRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._predictions = predictions
        self._users = users
        self._stocks = stocks
        self._follows = follows
        self._clock = clock

    # ------------------------------------------------------------------
    # Creation / cancellation
    # ------------------------------------------------------------------

    async def create_prediction(
        self,
        user_id: int,
        symbol: str,
        predicted_change: float,
        hold_period: str,
        reason: str = "",
        confidence: int = 3,
    ) -> Prediction:
        """Open a prediction at the stock's current price."""
        if hold_period not in HOLD_PERIODS:
            raise ValueError(f"Unknown hold period: {hold_period}")
        if not 1 <= confidence <= 5:
            raise ValueError(f"Confidence must be between 1 and 5, got {confidence}")

        user = await self._users.get(user_id)
        if user is None or user.status != USER_ACTIVE:
            raise NotFoundError(f"User {user_id} not found", details={"user_id": user_id})

        stock = await self._stocks.get(symbol)
        if stock is None or stock.status != STOCK_ACTIVE:
            raise NotFoundError(f"Stock {symbol} not found", details={"symbol": symbol})
        if not stock.current_price:
            raise MissingPriceError(f"Stock {symbol} has no current price", details={"symbol": symbol})

        if await self._predictions.find_active(user_id, symbol) is not None:
            raise InvalidStateError(
                f"User {user_id} already has an active prediction on {symbol}",
                details={"user_id": user_id, "symbol": symbol},
            )

        now = self._clock()
        prediction = Prediction(
            user_id=user_id,
            symbol=symbol,
            predicted_change=predicted_change,
            reason=reason,
            confidence=confidence,
            hold_period=hold_period,
            entry_price=stock.current_price,
            current_price=stock.current_price,
            current_return=0.0,
            start_date=now,
            end_date=hold_period_end(now, hold_period),
            status=PREDICTION_ACTIVE,
            follow_count=0,
            created_at=now,
            updated_at=now,
        )
        prediction = await self._predictions.add(prediction)
        logger.info("Prediction %s opened: user=%s %s %+.2f%% %s", prediction.id, user_id, symbol, predicted_change, hold_period)
        return prediction

    async def cancel_prediction(self, user_id: int, prediction_id: int) -> Prediction:
        """Author withdraws an active prediction; no score is earned or lost."""
        now = self._clock()
        async with self._predictions.locked(prediction_id) as prediction:
            if prediction.user_id != user_id:
                raise InvalidStateError(
                    "Only the author can cancel a prediction",
                    details={"prediction_id": prediction_id, "user_id": user_id},
                )
            close_without_outcome(prediction, PREDICTION_CANCELLED, now)

        logger.info("Prediction %s cancelled by user %s", prediction_id, user_id)
        await self._complete_follows(prediction, now)
        return prediction

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def settle(self, prediction_id: int, exit_price: float | None = None) -> Prediction:
        """Settle an active prediction and run the author/stock/follow cascade.

        Raises NotFoundError, InvalidStateError when the prediction is not
        active, MissingPriceError when no price is available (the prediction
        is left untouched), and ConcurrencyConflictError when another
        settlement holds the row.
        """
        now = self._clock()
        async with self._predictions.locked(prediction_id) as prediction:
            ensure_active(prediction)
            outcome = decide_outcome(prediction, exit_price)
            apply_outcome(prediction, outcome, now)

        logger.info(
            "Prediction %s settled %s: exit=%.4f return=%.4f%% accuracy=%.2f",
            prediction_id, outcome.status, outcome.exit_price, outcome.actual_return, outcome.accuracy,
        )
        await self._cascade(prediction, outcome, now)
        return prediction

    async def _cascade(self, prediction: Prediction, outcome: SettlementOutcome, now: datetime) -> None:
        try:
            await self._users.update_locked(
                prediction.user_id, lambda user: _record_outcome(user, outcome.success),
            )
        except Exception:
            logger.warning("User stats update failed for prediction %s", prediction.id, exc_info=True)

        try:
            await self._stocks.refresh_stats(prediction.symbol)
        except Exception:
            logger.warning("Stock stats refresh failed for %s", prediction.symbol, exc_info=True)

        await self._complete_follows(prediction, now)

    async def _complete_follows(self, prediction: Prediction, now: datetime) -> None:
        try:
            completed = await self._follows.complete_for_prediction(prediction.id, prediction.exit_price, now)
        except Exception:
            logger.warning("Follow completion failed for prediction %s", prediction.id, exc_info=True)
            return
        if completed:
            logger.info("Completed %d follows of prediction %s", completed, prediction.id)

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    async def check_expired(self, prediction_id: int) -> Prediction:
        """Settle the prediction if its hold period is over; otherwise a no-op.

        MissingPriceError propagates so the next pass can retry.
        """
        prediction = await self._predictions.get(prediction_id)
        if prediction is None:
            raise NotFoundError(f"Prediction {prediction_id} not found", details={"prediction_id": prediction_id})
        if not is_expired(prediction, self._clock()):
            return prediction

        try:
            prediction = await self.settle(prediction_id)
        except InvalidStateError:
            # settled or cancelled between the read and the lock
            return await self._predictions.get(prediction_id) or prediction

        if prediction.status == PREDICTION_ACTIVE:
            prediction = await self._force_expire(prediction_id)
        return prediction

    async def _force_expire(self, prediction_id: int) -> Prediction:
        now = self._clock()
        async with self._predictions.locked(prediction_id) as prediction:
            close_without_outcome(prediction, PREDICTION_EXPIRED, now)
        logger.warning("Prediction %s forced to expired", prediction_id)
        return prediction

    async def settle_expired(self) -> ExpiryReport:
        """Run check_expired over every active prediction past its end date."""
        report = ExpiryReport()
        for prediction_id in await self._predictions.list_expired_ids(self._clock()):
            report.checked += 1
            try:
                await self.check_expired(prediction_id)
                report.settled += 1
            except MissingPriceError:
                report.missing_price += 1
                logger.warning("Prediction %s expired without a price, will retry", prediction_id)
            except AppException as exc:
                report.failed += 1
                report.failed_ids.append(prediction_id)
                logger.warning("Prediction %s expiry failed: %s", prediction_id, exc.message)

        if report.checked:
            logger.info(
                "Expiry pass: %d checked, %d settled, %d missing price, %d failed",
                report.checked, report.settled, report.missing_price, report.failed,
            )
        return report

    # ------------------------------------------------------------------
    # Mark-to-market
    # ------------------------------------------------------------------

    async def update_current_return(self, prediction_id: int, current_price: float) -> Prediction:
        """Refresh the unrealized return of an active prediction."""
        now = self._clock()
        async with self._predictions.locked(prediction_id) as prediction:
            apply_current_price(prediction, current_price, now)
        return prediction


def _record_outcome(user: User, success: bool) -> None:
    stats.apply_outcome(stats.UserStats.from_user(user), success).write_to(user)
