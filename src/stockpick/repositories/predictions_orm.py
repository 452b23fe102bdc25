"""Prediction repository using SQLAlchemy ORM."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import select, update

from stockpick.db.models import PREDICTION_ACTIVE, Prediction
from stockpick.exceptions import NotFoundError
from stockpick.predictions.settlement import apply_current_price
from stockpick.repositories.base import SqlRepository


class SqlPredictionRepository(SqlRepository):
    async def get(self, prediction_id: int) -> Prediction | None:
        async with self.transaction() as session:
            return await session.get(Prediction, prediction_id)

    @asynccontextmanager
    async def locked(self, prediction_id: int) -> AsyncIterator[Prediction]:
        """Row lock with NOWAIT: a second settler fails fast instead of queueing."""
        async with self.transaction() as session:
            result = await session.execute(
                select(Prediction)
                .where(Prediction.id == prediction_id)
                .with_for_update(nowait=True)
            )
            prediction = result.scalar_one_or_none()
            if prediction is None:
                raise NotFoundError(
                    f"Prediction {prediction_id} not found",
                    details={"prediction_id": prediction_id},
                )
            yield prediction

    async def add(self, prediction: Prediction) -> Prediction:
        async with self.transaction() as session:
            session.add(prediction)
            await session.flush()
            return prediction

    async def find_active(self, user_id: int, symbol: str) -> Prediction | None:
        async with self.transaction() as session:
            result = await session.execute(
                select(Prediction).where(
                    Prediction.user_id == user_id,
                    Prediction.symbol == symbol,
                    Prediction.status == PREDICTION_ACTIVE,
                )
            )
            return result.scalars().first()

    async def list_expired_ids(self, now: datetime) -> list[int]:
        async with self.transaction() as session:
            result = await session.execute(
                select(Prediction.id)
                .where(Prediction.status == PREDICTION_ACTIVE, Prediction.end_date < now)
                .order_by(Prediction.end_date)
            )
            return list(result.scalars())

    async def mark_to_market(self, symbol: str, price: float, now: datetime) -> int:
        # SKIP LOCKED: rows being settled right now keep their settlement price
        async with self.transaction() as session:
            result = await session.execute(
                select(Prediction)
                .where(Prediction.symbol == symbol, Prediction.status == PREDICTION_ACTIVE)
                .with_for_update(skip_locked=True)
            )
            predictions = list(result.scalars())
            for prediction in predictions:
                apply_current_price(prediction, price, now)
            return len(predictions)

    async def list_in_window(
        self, user_ids: Sequence[int], start: datetime | None, end: datetime | None,
    ) -> list[Prediction]:
        if not user_ids:
            return []
        stmt = select(Prediction).where(Prediction.user_id.in_(user_ids))
        if start is not None and end is not None:
            stmt = stmt.where(Prediction.created_at.between(start, end))
        async with self.transaction() as session:
            result = await session.execute(stmt.order_by(Prediction.user_id, Prediction.id))
            return list(result.scalars())

    async def adjust_follow_count(self, prediction_id: int, delta: int) -> None:
        async with self.transaction() as session:
            await session.execute(
                update(Prediction)
                .where(Prediction.id == prediction_id)
                .values(follow_count=Prediction.follow_count + delta)
            )
