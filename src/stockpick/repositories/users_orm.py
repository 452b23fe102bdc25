"""User repository using SQLAlchemy ORM."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import select

from stockpick.db.models import USER_ACTIVE, User
from stockpick.exceptions import NotFoundError
from stockpick.repositories.base import SqlRepository


class SqlUserRepository(SqlRepository):
    async def get(self, user_id: int) -> User | None:
        async with self.transaction() as session:
            return await session.get(User, user_id)

    async def list_active(self) -> list[User]:
        async with self.transaction() as session:
            result = await session.execute(
                select(User).where(User.status == USER_ACTIVE).order_by(User.id)
            )
            return list(result.scalars())

    async def update_locked(self, user_id: int, mutate: Callable[[User], None]) -> User:
        async with self.transaction() as session:
            result = await session.execute(
                select(User).where(User.id == user_id).with_for_update()
            )
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFoundError(f"User {user_id} not found", details={"user_id": user_id})
            mutate(user)
            user.updated_at = datetime.now(timezone.utc)
            return user
