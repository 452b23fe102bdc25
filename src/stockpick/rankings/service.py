"""Leaderboard snapshots: recomputation and reads.

Recomputing a (ranking_type, period) is idempotent. The whole snapshot is
rebuilt from raw predictions and swapped in atomically, guarded so only one
run per period is in flight across all workers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any

from stockpick.db.models import RankingSnapshot
from stockpick.predictions.service import utcnow
from stockpick.rankings.engine import DEFAULT_STREAK_WINDOW, build_rankings
from stockpick.rankings.lock import RankingRunGuard
from stockpick.rankings.periods import (
    DEFAULT_TIMEZONE,
    RANKING_TYPES,
    current_period,
    period_range,
    previous_period,
    validate_period,
    validate_ranking_type,
)
from stockpick.repositories.interfaces import PredictionRepository, RankingRepository, UserRepository

logger = logging.getLogger(__name__)


@dataclass
class RankingPage:
    ranking_type: str
    period: str
    items: list[RankingSnapshot]
    total: int
    limit: int
    offset: int


class RankingService:
    def __init__(
        self,
        users: UserRepository,
        predictions: PredictionRepository,
        rankings: RankingRepository,
        guard: RankingRunGuard,
        tz: tzinfo = DEFAULT_TIMEZONE,
        streak_window: int = DEFAULT_STREAK_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._users = users
        self._predictions = predictions
        self._rankings = rankings
        self._guard = guard
        self._tz = tz
        self._streak_window = streak_window
        self._clock = clock

    def resolve_period(self, ranking_type: str, period: str | None = None) -> str:
        """Validate ``period``, defaulting to the one containing now."""
        validate_ranking_type(ranking_type)
        if period is None:
            return current_period(ranking_type, self._clock(), self._tz)
        return validate_period(ranking_type, period)

    async def calculate_rankings(self, ranking_type: str, period: str | None = None) -> list[RankingSnapshot]:
        """Rebuild the snapshot for one period.

        Raises ConcurrencyConflictError when another run holds the period.
        """
        period = self.resolve_period(ranking_type, period)
        start, end = period_range(ranking_type, period, self._tz)

        async with self._guard.hold(ranking_type, period):
            users = await self._users.list_active()
            predictions = await self._predictions.list_in_window([u.id for u in users], start, end)
            previous_ranks = await self._rankings.previous_ranks(
                ranking_type, previous_period(ranking_type, period),
            )
            rows = build_rankings(
                ranking_type,
                period,
                start,
                end,
                users,
                predictions,
                previous_ranks=previous_ranks,
                streak_window=self._streak_window,
            )
            snapshots = await self._rankings.replace_snapshot(ranking_type, period, rows)

        logger.info(
            "Calculated %s ranking for %s: %d users, %d predictions",
            ranking_type, period, len(users), len(predictions),
        )
        return snapshots

    async def get_ranking_list(
        self, ranking_type: str, period: str | None = None, limit: int = 50, offset: int = 0,
    ) -> RankingPage:
        period = self.resolve_period(ranking_type, period)
        items, total = await self._rankings.list_page(ranking_type, period, limit, offset)
        return RankingPage(
            ranking_type=ranking_type,
            period=period,
            items=items,
            total=total,
            limit=limit,
            offset=offset,
        )

    async def get_user_ranking(
        self, user_id: int, ranking_type: str, period: str | None = None,
    ) -> RankingSnapshot | None:
        period = self.resolve_period(ranking_type, period)
        return await self._rankings.get_for_user(user_id, ranking_type, period)

    async def get_ranking_history(self, ranking_type: str, limit: int = 12) -> list[dict[str, Any]]:
        """Per-period summary, newest period first."""
        validate_ranking_type(ranking_type)
        history = await self._rankings.history(ranking_type, limit)
        return [
            {
                **entry,
                "avg_score": round(float(entry.get("avg_score") or 0.0), 2),
            }
            for entry in history
        ]

    async def get_user_ranking_trend(
        self, user_id: int, ranking_type: str, limit: int = 12,
    ) -> list[dict[str, Any]]:
        """Rank and score per period for one user, oldest period first."""
        validate_ranking_type(ranking_type)
        snapshots = await self._rankings.user_trend(user_id, ranking_type, limit)
        return [
            {
                "period": s.period,
                "rank": s.rank,
                "previous_rank": s.previous_rank,
                "rank_change": s.rank_change,
                "score": s.score,
                "win_rate": s.win_rate,
                "badge": s.badge,
            }
            for s in reversed(snapshots)
        ]

    async def get_ranking_stats(self) -> dict[str, dict[str, Any]]:
        """Participants and champion of each ranking's current period."""
        now = self._clock()
        stats: dict[str, dict[str, Any]] = {}
        for ranking_type in RANKING_TYPES:
            period = current_period(ranking_type, now, self._tz)
            champion = await self._rankings.champion(ranking_type, period)
            stats[ranking_type] = {
                "period": period,
                "participants": await self._rankings.count(ranking_type, period),
                "champion": (
                    {"user_id": champion.user_id, "score": champion.score, "badge": champion.badge}
                    if champion is not None
                    else None
                ),
            }
        return stats
