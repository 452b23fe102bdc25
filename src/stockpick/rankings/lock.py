"""Cross-process guard against overlapping ranking recomputation."""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from stockpick.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

LOCK_PREFIX = "stockpick:ranking:calc"

# Atomic check-and-delete: only the holder's token releases the claim
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def lock_key(ranking_type: str, period: str) -> str:
    return f"{LOCK_PREFIX}:{ranking_type}:{period}"


class RankingRunGuard:
    """One recomputation per (ranking_type, period) at a time, across instances.

    The claim expires after ``ttl_seconds`` so a crashed holder cannot block
    the period forever.
    """

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int = 300):
        self._redis = redis
        self._ttl = ttl_seconds

    @asynccontextmanager
    async def hold(self, ranking_type: str, period: str) -> AsyncIterator[None]:
        key = lock_key(ranking_type, period)
        token = str(uuid.uuid4())
        acquired = await self._redis.set(key, token, ex=self._ttl, nx=True)
        if not acquired:
            raise ConcurrencyConflictError(
                f"Ranking {ranking_type}/{period} is already being calculated",
                details={"ranking_type": ranking_type, "period": period},
            )
        try:
            yield
        finally:
            released = await self._redis.eval(RELEASE_SCRIPT, 1, key, token)
            if not released:
                logger.warning("Ranking claim %s expired before release", key)
