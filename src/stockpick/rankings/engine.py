"""Deterministic leaderboard computation, no I/O.

Rows are ordered by score DESC, win rate DESC, average return DESC, with user
id ASC as the final tiebreaker, then given dense ranks 1..N.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from stockpick.db.models import (
    PREDICTION_SUCCESS,
    SETTLED_STATUSES,
    Prediction,
    User,
)
from stockpick.rankings.periods import MONTHLY, TOTAL, WEEKLY
from stockpick.scoring.stats import FAILURE_PENALTY, success_score

DEFAULT_STREAK_WINDOW = 20

CHAMPION_BADGES = {
    WEEKLY: "weekly_champion",
    MONTHLY: "monthly_champion",
    TOTAL: "overall_champion",
}
RUNNER_UP_BADGE = "runner_up"
THIRD_PLACE_BADGE = "third_place"
TOP_TEN_BADGE = "top_ten"
TOP_TEN_LAST_RANK = 9


@dataclass
class SnapshotRow:
    """A computed leaderboard row, ready to persist."""

    user_id: int
    ranking_type: str
    period: str
    score: int
    period_score: int
    total_predictions: int
    success_predictions: int
    win_rate: float
    avg_return: float
    max_return: float
    current_streak: int
    max_streak: int
    period_start: datetime | None
    period_end: datetime | None
    rank: int = 0
    previous_rank: int | None = None
    badge: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "ranking_type": self.ranking_type,
            "period": self.period,
            "rank": self.rank,
            "previous_rank": self.previous_rank,
            "score": self.score,
            "period_score": self.period_score,
            "total_predictions": self.total_predictions,
            "success_predictions": self.success_predictions,
            "win_rate": self.win_rate,
            "avg_return": self.avg_return,
            "max_return": self.max_return,
            "current_streak": self.current_streak,
            "max_streak": self.max_streak,
            "period_start": self.period_start,
            "period_end": self.period_end,
            "badge": self.badge,
        }


@dataclass
class PeriodAggregate:
    total: int = 0
    success: int = 0
    win_rate: float = 0.0
    avg_return: float = 0.0
    max_return: float = 0.0
    period_score: int = 0
    current_streak: int = 0
    max_streak: int = 0
    returns: list[float] = field(default_factory=list)


def _settled(predictions: Iterable[Prediction]) -> list[Prediction]:
    return [p for p in predictions if p.status in SETTLED_STATUSES and p.settled_at is not None]


def period_score(predictions: Iterable[Prediction]) -> int:
    """Re-sum the score for settled predictions in settlement order.

    The streak bonus uses the streak as it stood inside this window, so a
    period score does not depend on history before the window.
    """
    score = 0
    streak = 0
    for p in sorted(_settled(predictions), key=lambda p: (p.settled_at, p.id)):
        if p.status == PREDICTION_SUCCESS:
            streak += 1
            score += success_score(streak)
        else:
            streak = 0
            score -= FAILURE_PENALTY
    return score


def recent_streaks(predictions: Iterable[Prediction], window: int = DEFAULT_STREAK_WINDOW) -> tuple[int, int]:
    """(current, max) success streaks over the ``window`` most recent settlements.

    Walks newest to oldest: the leading run of successes is the current
    streak, the longest run anywhere in the window is the max streak.
    """
    recent = sorted(_settled(predictions), key=lambda p: (p.settled_at, p.id), reverse=True)[:window]

    current = 0
    longest = 0
    run = 0
    leading = True
    for p in recent:
        if p.status == PREDICTION_SUCCESS:
            run += 1
        else:
            if leading:
                current = run
                leading = False
            longest = max(longest, run)
            run = 0
    if leading:
        current = run
    longest = max(longest, run)
    return current, longest


def aggregate_period(predictions: list[Prediction], window: int = DEFAULT_STREAK_WINDOW) -> PeriodAggregate:
    """Aggregate one user's in-window predictions."""
    agg = PeriodAggregate()
    agg.total = len(predictions)
    agg.success = sum(1 for p in predictions if p.status == PREDICTION_SUCCESS)
    agg.win_rate = agg.success / agg.total if agg.total > 0 else 0.0
    # cancelled and expired calls carry a return but never score
    agg.returns = [p.actual_return for p in _settled(predictions) if p.actual_return is not None]
    if agg.returns:
        agg.avg_return = round(sum(agg.returns) / len(agg.returns), 4)
        agg.max_return = max(agg.returns)
    agg.period_score = period_score(predictions)
    agg.current_streak, agg.max_streak = recent_streaks(predictions, window)
    return agg


def assign_badge(ranking_type: str, rank: int) -> str | None:
    if rank == 1:
        return CHAMPION_BADGES[ranking_type]
    if rank == 2:
        return RUNNER_UP_BADGE
    if rank == 3:
        return THIRD_PLACE_BADGE
    if rank <= TOP_TEN_LAST_RANK:
        return TOP_TEN_BADGE
    return None


def sort_key(row: SnapshotRow) -> tuple[int, float, float, int]:
    return (-row.score, -row.win_rate, -row.avg_return, row.user_id)


def rank_rows(
    rows: list[SnapshotRow],
    ranking_type: str,
    previous_ranks: dict[int, int] | None = None,
) -> list[SnapshotRow]:
    """Sort rows, assign dense ranks, previous ranks and badges in place."""
    previous_ranks = previous_ranks or {}
    ranked = sorted(rows, key=sort_key)
    for idx, row in enumerate(ranked):
        row.rank = idx + 1
        row.previous_rank = previous_ranks.get(row.user_id)
        row.badge = assign_badge(ranking_type, row.rank)
    return ranked


def build_rankings(
    ranking_type: str,
    period: str,
    period_start: datetime | None,
    period_end: datetime | None,
    users: list[User],
    predictions: Iterable[Prediction],
    previous_ranks: dict[int, int] | None = None,
    streak_window: int = DEFAULT_STREAK_WINDOW,
) -> list[SnapshotRow]:
    """Compute the full, ranked snapshot for one (ranking_type, period).

    Every user passed in gets a row even with no predictions in the window.
    ``predictions`` must already be restricted to the window.
    """
    by_user: dict[int, list[Prediction]] = defaultdict(list)
    for p in predictions:
        by_user[p.user_id].append(p)

    rows = []
    for user in users:
        agg = aggregate_period(by_user.get(user.id, []), streak_window)
        score = (user.total_score or 0) if ranking_type == TOTAL else agg.period_score
        rows.append(SnapshotRow(
            user_id=user.id,
            ranking_type=ranking_type,
            period=period,
            score=score,
            period_score=agg.period_score,
            total_predictions=agg.total,
            success_predictions=agg.success,
            win_rate=round(agg.win_rate, 4),
            avg_return=agg.avg_return,
            max_return=agg.max_return,
            current_streak=agg.current_streak,
            max_streak=agg.max_streak,
            period_start=period_start,
            period_end=period_end,
        ))

    return rank_rows(rows, ranking_type, previous_ranks)

