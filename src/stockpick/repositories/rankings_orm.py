"""Ranking snapshot repository using SQLAlchemy ORM."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete, func, select

from stockpick.db.models import USER_ACTIVE, RankingSnapshot, User
from stockpick.rankings.engine import SnapshotRow
from stockpick.repositories.base import SqlRepository

logger = logging.getLogger(__name__)


class SqlRankingRepository(SqlRepository):
    async def previous_ranks(self, ranking_type: str, period: str) -> dict[int, int]:
        async with self.transaction() as session:
            result = await session.execute(
                select(RankingSnapshot.user_id, RankingSnapshot.rank).where(
                    RankingSnapshot.ranking_type == ranking_type,
                    RankingSnapshot.period == period,
                )
            )
            return {row.user_id: row.rank for row in result}

    async def replace_snapshot(
        self, ranking_type: str, period: str, rows: Sequence[SnapshotRow],
    ) -> list[RankingSnapshot]:
        async with self.transaction() as session:
            await session.execute(
                delete(RankingSnapshot).where(
                    RankingSnapshot.ranking_type == ranking_type,
                    RankingSnapshot.period == period,
                )
            )
            snapshots = [RankingSnapshot(**row.as_dict()) for row in rows]
            session.add_all(snapshots)
            await session.flush()
        logger.info("Replaced %s/%s snapshot with %d rows", ranking_type, period, len(snapshots))
        return snapshots

    def _visible(self, ranking_type: str, period: str):
        return (
            select(RankingSnapshot)
            .join(User, User.id == RankingSnapshot.user_id)
            .where(
                RankingSnapshot.ranking_type == ranking_type,
                RankingSnapshot.period == period,
                User.status == USER_ACTIVE,
            )
        )

    async def list_page(
        self, ranking_type: str, period: str, limit: int, offset: int,
    ) -> tuple[list[RankingSnapshot], int]:
        visible = self._visible(ranking_type, period)
        async with self.transaction() as session:
            total = (await session.execute(
                select(func.count()).select_from(visible.subquery())
            )).scalar_one()
            result = await session.execute(
                visible.order_by(RankingSnapshot.rank).limit(limit).offset(offset)
            )
            return list(result.scalars()), total

    async def get_for_user(self, user_id: int, ranking_type: str, period: str) -> RankingSnapshot | None:
        async with self.transaction() as session:
            result = await session.execute(
                select(RankingSnapshot).where(
                    RankingSnapshot.user_id == user_id,
                    RankingSnapshot.ranking_type == ranking_type,
                    RankingSnapshot.period == period,
                )
            )
            return result.scalar_one_or_none()

    async def history(self, ranking_type: str, limit: int) -> list[dict[str, Any]]:
        async with self.transaction() as session:
            result = await session.execute(
                select(
                    RankingSnapshot.period,
                    func.count(RankingSnapshot.id).label("participants"),
                    func.max(RankingSnapshot.score).label("top_score"),
                    func.avg(RankingSnapshot.score).label("avg_score"),
                    func.min(RankingSnapshot.period_start).label("period_start"),
                    func.max(RankingSnapshot.period_end).label("period_end"),
                    func.max(RankingSnapshot.created_at).label("calculated_at"),
                )
                .where(RankingSnapshot.ranking_type == ranking_type)
                .group_by(RankingSnapshot.period)
                .order_by(RankingSnapshot.period.desc())
                .limit(limit)
            )
            return [dict(row._mapping) for row in result]

    async def user_trend(self, user_id: int, ranking_type: str, limit: int) -> list[RankingSnapshot]:
        async with self.transaction() as session:
            result = await session.execute(
                select(RankingSnapshot)
                .where(
                    RankingSnapshot.user_id == user_id,
                    RankingSnapshot.ranking_type == ranking_type,
                )
                .order_by(RankingSnapshot.period.desc())
                .limit(limit)
            )
            return list(result.scalars())

    async def count(self, ranking_type: str, period: str) -> int:
        async with self.transaction() as session:
            return (await session.execute(
                select(func.count(RankingSnapshot.id)).where(
                    RankingSnapshot.ranking_type == ranking_type,
                    RankingSnapshot.period == period,
                )
            )).scalar_one()

    async def champion(self, ranking_type: str, period: str) -> RankingSnapshot | None:
        async with self.transaction() as session:
            result = await session.execute(
                select(RankingSnapshot).where(
                    RankingSnapshot.ranking_type == ranking_type,
                    RankingSnapshot.period == period,
                    RankingSnapshot.rank == 1,
                )
            )
            return result.scalar_one_or_none()
