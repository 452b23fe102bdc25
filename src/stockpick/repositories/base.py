"""Shared transaction handling for the SQLAlchemy repositories."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockpick.exceptions import ConcurrencyConflictError, InvalidStateError, PersistenceError

logger = logging.getLogger(__name__)

# lock_not_available, serialization_failure, deadlock_detected
LOCK_CONFLICT_SQLSTATES = {"55P03", "40001", "40P01"}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


@asynccontextmanager
async def transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Yield a session inside one transaction; commit on success, roll back on error.

    Storage errors surface as engine errors: lock contention becomes
    ConcurrencyConflictError, unique violations InvalidStateError, anything
    else PersistenceError.
    """
    try:
        async with session_factory() as session, session.begin():
            yield session
    except IntegrityError as exc:
        raise InvalidStateError("Conflicting record already exists") from exc
    except DBAPIError as exc:
        if _sqlstate(exc) in LOCK_CONFLICT_SQLSTATES:
            raise ConcurrencyConflictError() from exc
        logger.error("Database error: %s", exc)
        raise PersistenceError() from exc
    except SQLAlchemyError as exc:
        logger.error("Database error: %s", exc)
        raise PersistenceError() from exc


class SqlRepository:
    """Base for repositories that share one session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def transaction(self):
        return transaction(self._session_factory)
