"""Follow repository using SQLAlchemy ORM."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from stockpick.db.models import (
    FOLLOW_ACTIVE,
    FOLLOW_CANCELLED,
    FOLLOW_COMPLETED,
    PREDICTION_ACTIVE,
    Follow,
    Prediction,
)
from stockpick.exceptions import InvalidStateError, NotFoundError
from stockpick.predictions.settlement import compute_return
from stockpick.repositories.base import SqlRepository


class SqlFollowRepository(SqlRepository):
    async def find(
        self,
        follower_id: int,
        *,
        prediction_id: int | None = None,
        target_user_id: int | None = None,
    ) -> Follow | None:
        stmt = select(Follow).where(Follow.follower_id == follower_id)
        if prediction_id is not None:
            stmt = stmt.where(Follow.prediction_id == prediction_id)
        if target_user_id is not None:
            stmt = stmt.where(Follow.target_user_id == target_user_id)
        async with self.transaction() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def add(self, follow: Follow) -> Follow:
        async with self.transaction() as session:
            session.add(follow)
            await session.flush()
            return follow

    async def cancel(self, follow_id: int, now: datetime) -> Follow:
        async with self.transaction() as session:
            result = await session.execute(
                select(Follow).where(Follow.id == follow_id).with_for_update()
            )
            follow = result.scalar_one_or_none()
            if follow is None:
                raise NotFoundError(f"Follow {follow_id} not found", details={"follow_id": follow_id})
            if follow.status != FOLLOW_ACTIVE:
                raise InvalidStateError(
                    "Follow is not active",
                    details={"follow_id": follow_id, "status": follow.status},
                )
            follow.status = FOLLOW_CANCELLED
            follow.completed_at = now
            return follow

    async def reactivate(
        self, follow_id: int, *, amount: float, follow_price: float | None, now: datetime,
    ) -> Follow:
        async with self.transaction() as session:
            result = await session.execute(
                select(Follow).where(Follow.id == follow_id).with_for_update()
            )
            follow = result.scalar_one_or_none()
            if follow is None:
                raise NotFoundError(f"Follow {follow_id} not found", details={"follow_id": follow_id})
            if follow.status != FOLLOW_CANCELLED:
                raise InvalidStateError(
                    "Only cancelled follows can be reopened",
                    details={"follow_id": follow_id, "status": follow.status},
                )
            follow.status = FOLLOW_ACTIVE
            follow.follow_amount = amount
            follow.follow_price = follow_price
            follow.current_return = 0.0 if follow.prediction_id is not None else None
            follow.actual_return = None
            follow.followed_at = now
            follow.completed_at = None
            return follow

    async def complete_for_prediction(self, prediction_id: int, exit_price: float, now: datetime) -> int:
        async with self.transaction() as session:
            result = await session.execute(
                select(Follow)
                .where(Follow.prediction_id == prediction_id, Follow.status == FOLLOW_ACTIVE)
                .with_for_update()
            )
            follows = list(result.scalars())
            for follow in follows:
                if follow.follow_price:
                    follow.actual_return = compute_return(exit_price, follow.follow_price)
                    follow.current_return = follow.actual_return
                follow.status = FOLLOW_COMPLETED
                follow.completed_at = now
            return len(follows)

    async def mark_to_market(self, symbol: str, price: float) -> int:
        async with self.transaction() as session:
            result = await session.execute(
                select(Follow)
                .join(Prediction, Prediction.id == Follow.prediction_id)
                .where(
                    Prediction.symbol == symbol,
                    Prediction.status == PREDICTION_ACTIVE,
                    Follow.status == FOLLOW_ACTIVE,
                )
                .with_for_update(of=Follow, skip_locked=True)
            )
            follows = list(result.scalars())
            for follow in follows:
                if follow.follow_price:
                    follow.current_return = compute_return(price, follow.follow_price)
            return len(follows)
