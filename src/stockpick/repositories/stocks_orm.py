"""Stock repository using SQLAlchemy ORM."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func, select, update

from stockpick.db.models import PREDICTION_SUCCESS, SETTLED_STATUSES, STOCK_ACTIVE, Prediction, Stock
from stockpick.prices.source import Quote
from stockpick.repositories.base import SqlRepository


class SqlStockRepository(SqlRepository):
    async def get(self, symbol: str) -> Stock | None:
        async with self.transaction() as session:
            result = await session.execute(select(Stock).where(Stock.symbol == symbol))
            return result.scalar_one_or_none()

    async def list_active_symbols(self) -> list[str]:
        async with self.transaction() as session:
            result = await session.execute(
                select(Stock.symbol).where(Stock.status == STOCK_ACTIVE).order_by(Stock.symbol)
            )
            return list(result.scalars())

    async def save_quote(self, quote: Quote, now: datetime) -> None:
        async with self.transaction() as session:
            result = await session.execute(
                select(Stock).where(Stock.symbol == quote.symbol).with_for_update()
            )
            stock = result.scalar_one_or_none()
            if stock is None:
                return
            stock.current_price = quote.price
            stock.change_amount = quote.change_amount
            stock.change_percent = quote.change_percent
            stock.price_updated_at = now

    async def roll_previous_close(self) -> int:
        async with self.transaction() as session:
            result = await session.execute(
                update(Stock)
                .where(Stock.status == STOCK_ACTIVE, Stock.current_price.is_not(None))
                .values(previous_close=Stock.current_price)
            )
            return result.rowcount or 0

    async def refresh_stats(self, symbol: str) -> Stock | None:
        """Recompute aggregates for ``symbol``.

        ``recommend_count`` counts every call on the symbol. Success rate and
        average return cover settled (success or failed) calls only.
        """
        async with self.transaction() as session:
            is_settled = Prediction.status.in_(SETTLED_STATUSES)
            stats = (await session.execute(
                select(
                    func.count(Prediction.id).label("total"),
                    func.count(case((is_settled, 1))).label("settled"),
                    func.count(case((Prediction.status == PREDICTION_SUCCESS, 1))).label("success"),
                    func.avg(case((is_settled, Prediction.actual_return))).label("avg_return"),
                ).where(Prediction.symbol == symbol)
            )).one()

            result = await session.execute(
                select(Stock).where(Stock.symbol == symbol).with_for_update()
            )
            stock = result.scalar_one_or_none()
            if stock is None:
                return None

            settled = stats.settled or 0
            stock.recommend_count = stats.total or 0
            stock.success_rate = round((stats.success or 0) / settled, 4) if settled > 0 else 0.0
            stock.avg_return = round(float(stats.avg_return or 0.0), 4)
            return stock
