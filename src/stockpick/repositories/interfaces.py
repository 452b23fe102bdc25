"""Repository contracts the services depend on.

Each method is one atomic unit of work against the store. Implementations
must honour the locking notes: the settlement path relies on them for
exactly-once stat updates.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Protocol

from stockpick.db.models import Follow, Prediction, RankingSnapshot, Stock, User
from stockpick.prices.source import Quote
from stockpick.rankings.engine import SnapshotRow


class UserRepository(Protocol):
    async def get(self, user_id: int) -> User | None: ...

    async def list_active(self) -> list[User]: ...

    async def update_locked(self, user_id: int, mutate: Callable[[User], None]) -> User:
        """Lock the user row, apply ``mutate`` and commit.

        Concurrent calls for one user are serialized; raises NotFoundError.
        """
        ...


class StockRepository(Protocol):
    async def get(self, symbol: str) -> Stock | None: ...

    async def list_active_symbols(self) -> list[str]: ...

    async def save_quote(self, quote: Quote, now: datetime) -> None: ...

    async def roll_previous_close(self) -> int:
        """Copy each active stock's current price into ``previous_close``."""
        ...

    async def refresh_stats(self, symbol: str) -> Stock | None:
        """Recompute prediction count, plus success rate and mean return of settled predictions."""
        ...


class PredictionRepository(Protocol):
    async def get(self, prediction_id: int) -> Prediction | None: ...

    def locked(self, prediction_id: int) -> AbstractAsyncContextManager[Prediction]:
        """Exclusive hold on one prediction; changes commit when the block exits.

        Raises NotFoundError, or ConcurrencyConflictError when another holder
        has the row.
        """
        ...

    async def add(self, prediction: Prediction) -> Prediction: ...

    async def find_active(self, user_id: int, symbol: str) -> Prediction | None: ...

    async def list_expired_ids(self, now: datetime) -> list[int]: ...

    async def mark_to_market(self, symbol: str, price: float, now: datetime) -> int:
        """Update current price/return of every active prediction on ``symbol``."""
        ...

    async def list_in_window(
        self, user_ids: Sequence[int], start: datetime | None, end: datetime | None,
    ) -> list[Prediction]:
        """Predictions by ``user_ids`` created within [start, end]; unbounded when None."""
        ...

    async def adjust_follow_count(self, prediction_id: int, delta: int) -> None: ...


class FollowRepository(Protocol):
    async def find(
        self,
        follower_id: int,
        *,
        prediction_id: int | None = None,
        target_user_id: int | None = None,
    ) -> Follow | None: ...

    async def add(self, follow: Follow) -> Follow: ...

    async def cancel(self, follow_id: int, now: datetime) -> Follow: ...

    async def reactivate(
        self, follow_id: int, *, amount: float, follow_price: float | None, now: datetime,
    ) -> Follow:
        """Reopen a cancelled follow as a fresh position; raises InvalidStateError otherwise."""
        ...

    async def complete_for_prediction(self, prediction_id: int, exit_price: float, now: datetime) -> int: ...

    async def mark_to_market(self, symbol: str, price: float) -> int: ...


class RankingRepository(Protocol):
    async def previous_ranks(self, ranking_type: str, period: str) -> dict[int, int]: ...

    async def replace_snapshot(
        self, ranking_type: str, period: str, rows: Sequence[SnapshotRow],
    ) -> list[RankingSnapshot]:
        """Delete and re-insert a (type, period) snapshot in one transaction."""
        ...

    async def list_page(
        self, ranking_type: str, period: str, limit: int, offset: int,
    ) -> tuple[list[RankingSnapshot], int]: ...

    async def get_for_user(self, user_id: int, ranking_type: str, period: str) -> RankingSnapshot | None: ...

    async def history(self, ranking_type: str, limit: int) -> list[dict[str, Any]]: ...

    async def user_trend(self, user_id: int, ranking_type: str, limit: int) -> list[RankingSnapshot]:
        """Newest periods first."""
        ...

    async def count(self, ranking_type: str, period: str) -> int: ...

    async def champion(self, ranking_type: str, period: str) -> RankingSnapshot | None: ...
