"""ORM models for the contest schema.

Tables are created by the Alembic migrations under ``alembic/versions``.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from stockpick.db.base import Base

# ---------------------------------------------------------------------------
# Enumerations (stored as plain strings)
# ---------------------------------------------------------------------------

PREDICTION_ACTIVE = "active"
PREDICTION_SUCCESS = "success"
PREDICTION_FAILED = "failed"
PREDICTION_EXPIRED = "expired"
PREDICTION_CANCELLED = "cancelled"
PREDICTION_STATUSES = (
    PREDICTION_ACTIVE,
    PREDICTION_SUCCESS,
    PREDICTION_FAILED,
    PREDICTION_EXPIRED,
    PREDICTION_CANCELLED,
)
SETTLED_STATUSES = (PREDICTION_SUCCESS, PREDICTION_FAILED)

HOLD_PERIODS = ("1week", "2weeks", "1month", "3months")

FOLLOW_RECOMMEND = "recommend"
FOLLOW_USER = "user"

FOLLOW_ACTIVE = "active"
FOLLOW_COMPLETED = "completed"
FOLLOW_CANCELLED = "cancelled"

USER_ACTIVE = "active"
STOCK_ACTIVE = "active"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Contest participant with denormalized prediction statistics."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    nickname: Mapped[str] = mapped_column(String(50), nullable=False, default="Stock Picker")
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=USER_ACTIVE)

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    total_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    current_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    total_predictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    success_predictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    failed_predictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, server_default=text("NOW()")
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Stocks
# ---------------------------------------------------------------------------


class Stock(Base):
    """Tradable symbol with its last quote and prediction aggregates."""

    __tablename__ = "stocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STOCK_ACTIVE)

    current_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    previous_close: Mapped[float | None] = mapped_column(Float, nullable=True)
    change_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    change_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    recommend_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    success_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    avg_return: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")


# ---------------------------------------------------------------------------
# Predictions ("recommends")
# ---------------------------------------------------------------------------


class Prediction(Base):
    """A user's directional call on a symbol over a hold period.

    exit_price, actual_return and settled_at are null exactly while the
    prediction is active.
    """

    __tablename__ = "predictions"
    __table_args__ = (
        Index("idx_predictions_user_created", "user_id", "created_at"),
        Index("idx_predictions_status_end", "status", "end_date"),
        Index("idx_predictions_symbol", "symbol"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    symbol: Mapped[str] = mapped_column(String(16), ForeignKey("stocks.symbol"), nullable=False)

    predicted_change: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    confidence: Mapped[int] = mapped_column(Integer, nullable=False, default=3, server_default="3")
    hold_period: Mapped[str] = mapped_column(String(8), nullable=False)

    entry_price: Mapped[float] = mapped_column(Float, nullable=False)
    current_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_return: Mapped[float | None] = mapped_column(Float, nullable=True)
    exit_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_return: Mapped[float | None] = mapped_column(Float, nullable=True)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PREDICTION_ACTIVE)
    follow_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------


class Follow(Base):
    """A user mirroring one prediction, or following another user."""

    __tablename__ = "follows"
    __table_args__ = (
        Index(
            "uq_follows_follower_prediction",
            "follower_id",
            "prediction_id",
            unique=True,
            postgresql_where=text("prediction_id IS NOT NULL"),
        ),
        Index(
            "uq_follows_follower_target_user",
            "follower_id",
            "target_user_id",
            unique=True,
            postgresql_where=text("target_user_id IS NOT NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    follower_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    follow_type: Mapped[str] = mapped_column(String(16), nullable=False)
    prediction_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("predictions.id", ondelete="CASCADE"), nullable=True
    )
    target_user_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )

    follow_amount: Mapped[float] = mapped_column(Float, nullable=False, default=10_000.0)
    follow_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_return: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_return: Mapped[float | None] = mapped_column(Float, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=FOLLOW_ACTIVE)
    followed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Ranking snapshots
# ---------------------------------------------------------------------------


class RankingSnapshot(Base):
    """One user's row in a (ranking_type, period) leaderboard snapshot."""

    __tablename__ = "ranking_snapshots"
    __table_args__ = (
        UniqueConstraint("user_id", "ranking_type", "period", name="ranking_snapshots_user_type_period_key"),
        Index("idx_ranking_snapshots_type_period_rank", "ranking_type", "period", "rank"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    ranking_type: Mapped[str] = mapped_column(String(16), nullable=False)
    period: Mapped[str] = mapped_column(String(20), nullable=False)

    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    period_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_predictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_predictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    win_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_return: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_return: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    badge: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, server_default=text("NOW()")
    )

    @property
    def rank_change(self) -> int:
        """Positive = moved up since the previous period."""
        if self.previous_rank is None:
            return 0
        return self.previous_rank - self.rank
