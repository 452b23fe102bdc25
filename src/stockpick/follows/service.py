"""Following predictions and users.

A prediction follow is a virtual position opened at the stock's price when
the follow is made; its return tracks the prediction until settlement.

One row exists per (follower, target). Following again after an unfollow
reopens the cancelled row as a fresh position.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from stockpick.db.models import (
    FOLLOW_ACTIVE,
    FOLLOW_CANCELLED,
    FOLLOW_RECOMMEND,
    FOLLOW_USER,
    PREDICTION_ACTIVE,
    USER_ACTIVE,
    Follow,
)
from stockpick.exceptions import InvalidStateError, NotFoundError
from stockpick.predictions.service import utcnow
from stockpick.repositories.interfaces import (
    FollowRepository,
    PredictionRepository,
    StockRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


class FollowService:
    def __init__(
        self,
        follows: FollowRepository,
        predictions: PredictionRepository,
        stocks: StockRepository,
        users: UserRepository,
        default_amount: float = 10_000.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._follows = follows
        self._predictions = predictions
        self._stocks = stocks
        self._users = users
        self._default_amount = default_amount
        self._clock = clock

    async def follow_prediction(
        self, follower_id: int, prediction_id: int, amount: float | None = None,
    ) -> Follow:
        prediction = await self._predictions.get(prediction_id)
        if prediction is None:
            raise NotFoundError(f"Prediction {prediction_id} not found", details={"prediction_id": prediction_id})
        if prediction.status != PREDICTION_ACTIVE:
            raise InvalidStateError("Only active predictions can be followed", details={"prediction_id": prediction_id})
        if prediction.user_id == follower_id:
            raise InvalidStateError("Cannot follow your own prediction", details={"prediction_id": prediction_id})
        existing = await self._follows.find(follower_id, prediction_id=prediction_id)
        if existing is not None and existing.status != FOLLOW_CANCELLED:
            raise InvalidStateError("Prediction already followed", details={"prediction_id": prediction_id})

        stock = await self._stocks.get(prediction.symbol)
        follow_price = (stock.current_price if stock is not None else None) or prediction.current_price
        amount = amount if amount is not None else self._default_amount

        if existing is not None:
            follow = await self._follows.reactivate(
                existing.id, amount=amount, follow_price=follow_price, now=self._clock(),
            )
        else:
            follow = await self._follows.add(Follow(
                follower_id=follower_id,
                follow_type=FOLLOW_RECOMMEND,
                prediction_id=prediction_id,
                target_user_id=None,
                follow_amount=amount,
                follow_price=follow_price,
                current_return=0.0,
                actual_return=None,
                status=FOLLOW_ACTIVE,
                followed_at=self._clock(),
                completed_at=None,
            ))
        await self._predictions.adjust_follow_count(prediction_id, 1)
        logger.info("User %s followed prediction %s at %s", follower_id, prediction_id, follow_price)
        return follow

    async def unfollow_prediction(self, follower_id: int, prediction_id: int) -> Follow:
        follow = await self._follows.find(follower_id, prediction_id=prediction_id)
        if follow is None or follow.status != FOLLOW_ACTIVE:
            raise NotFoundError("No active follow for this prediction", details={"prediction_id": prediction_id})
        follow = await self._follows.cancel(follow.id, self._clock())
        await self._predictions.adjust_follow_count(prediction_id, -1)
        logger.info("User %s unfollowed prediction %s", follower_id, prediction_id)
        return follow

    async def follow_user(self, follower_id: int, target_user_id: int) -> Follow:
        if follower_id == target_user_id:
            raise InvalidStateError("Cannot follow yourself", details={"user_id": follower_id})
        target = await self._users.get(target_user_id)
        if target is None or target.status != USER_ACTIVE:
            raise NotFoundError(f"User {target_user_id} not found", details={"user_id": target_user_id})
        existing = await self._follows.find(follower_id, target_user_id=target_user_id)
        if existing is not None and existing.status != FOLLOW_CANCELLED:
            raise InvalidStateError("User already followed", details={"user_id": target_user_id})

        if existing is not None:
            follow = await self._follows.reactivate(existing.id, amount=0.0, follow_price=None, now=self._clock())
        else:
            follow = await self._follows.add(Follow(
                follower_id=follower_id,
                follow_type=FOLLOW_USER,
                prediction_id=None,
                target_user_id=target_user_id,
                follow_amount=0.0,
                follow_price=None,
                current_return=None,
                actual_return=None,
                status=FOLLOW_ACTIVE,
                followed_at=self._clock(),
                completed_at=None,
            ))
        logger.info("User %s followed user %s", follower_id, target_user_id)
        return follow

    async def unfollow_user(self, follower_id: int, target_user_id: int) -> Follow:
        follow = await self._follows.find(follower_id, target_user_id=target_user_id)
        if follow is None or follow.status != FOLLOW_ACTIVE:
            raise NotFoundError("No active follow for this user", details={"user_id": target_user_id})
        return await self._follows.cancel(follow.id, self._clock())
