"""User statistics transition applied once per settled prediction.

The same scoring rule is reused by the ranking engine when it re-sums period
scores from raw outcomes, so the two can never drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from stockpick.db.models import User
from stockpick.scoring.levels import level_for_score

BASE_SUCCESS_SCORE = 10
STREAK_BONUS_3 = 20
STREAK_BONUS_5 = 50
FAILURE_PENALTY = 5


def streak_bonus(streak: int) -> int:
    """Bonus on top of the base score for a success that brings the streak to ``streak``."""
    bonus = 0
    if streak >= 3:
        bonus += STREAK_BONUS_3
    if streak >= 5:
        bonus += STREAK_BONUS_5
    return bonus


def success_score(streak: int) -> int:
    """Score for a success, where ``streak`` already includes this success."""
    return BASE_SUCCESS_SCORE + streak_bonus(streak)


@dataclass(frozen=True)
class UserStats:
    """Snapshot of the counters a settlement mutates."""

    total_predictions: int = 0
    success_predictions: int = 0
    failed_predictions: int = 0
    current_streak: int = 0
    max_streak: int = 0
    total_score: int = 0
    current_score: int = 0
    level: int = 1

    @classmethod
    def from_user(cls, user: User) -> UserStats:
        return cls(
            total_predictions=user.total_predictions or 0,
            success_predictions=user.success_predictions or 0,
            failed_predictions=user.failed_predictions or 0,
            current_streak=user.current_streak or 0,
            max_streak=user.max_streak or 0,
            total_score=user.total_score or 0,
            current_score=user.current_score or 0,
            level=user.level or 1,
        )

    def write_to(self, user: User) -> None:
        user.total_predictions = self.total_predictions
        user.success_predictions = self.success_predictions
        user.failed_predictions = self.failed_predictions
        user.current_streak = self.current_streak
        user.max_streak = self.max_streak
        user.total_score = self.total_score
        user.current_score = self.current_score
        user.level = self.level


def apply_outcome(stats: UserStats, success: bool) -> UserStats:
    """Return the stats after one settled prediction.

    Success extends the streak and earns ``success_score`` at the new streak
    length. Failure resets the streak and costs FAILURE_PENALTY from the
    spendable score only (floored at 0). Total score never decreases.
    """
    if success:
        streak = stats.current_streak + 1
        gain = success_score(streak)
        updated = replace(
            stats,
            success_predictions=stats.success_predictions + 1,
            current_streak=streak,
            max_streak=max(stats.max_streak, streak),
            total_score=stats.total_score + gain,
            current_score=stats.current_score + gain,
        )
    else:
        updated = replace(
            stats,
            failed_predictions=stats.failed_predictions + 1,
            current_streak=0,
            current_score=max(0, stats.current_score - FAILURE_PENALTY),
        )

    return replace(
        updated,
        total_predictions=updated.total_predictions + 1,
        level=max(updated.level, level_for_score(updated.total_score)),
    )
