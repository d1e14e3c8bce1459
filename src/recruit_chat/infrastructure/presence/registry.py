"""Live socket counts per account, used to derive online/offline transitions."""
from __future__ import annotations

import logging
from collections import Counter

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class RedisPresenceRegistry:
    """Counts in one Redis hash so every server instance sees the same presence."""

    def __init__(self, redis: aioredis.Redis, key: str) -> None:
        self._redis = redis
        self._key = key

    async def add(self, account_id: int) -> bool:
        count = await self._redis.hincrby(self._key, str(account_id), 1)
        return int(count) == 1

    async def remove(self, account_id: int) -> bool:
        count = int(await self._redis.hincrby(self._key, str(account_id), -1))
        if count <= 0:
            await self._redis.hdel(self._key, str(account_id))
            if count < 0:
                logger.warning("Presence count for %s went negative", account_id)
            return count == 0
        return False

    async def online(self) -> list[int]:
        counts = await self._redis.hgetall(self._key)
        return sorted(int(account_id) for account_id, count in counts.items() if int(count) > 0)


class InMemoryPresenceRegistry:
    """Single-instance registry for tests and local runs without Redis."""

    def __init__(self) -> None:
        self._counts: Counter[int] = Counter()

    async def add(self, account_id: int) -> bool:
        self._counts[account_id] += 1
        return self._counts[account_id] == 1

    async def remove(self, account_id: int) -> bool:
        if self._counts[account_id] <= 0:
            del self._counts[account_id]
            return False
        self._counts[account_id] -= 1
        if self._counts[account_id] == 0:
            del self._counts[account_id]
            return True
        return False

    async def online(self) -> list[int]:
        return sorted(account_id for account_id, count in self._counts.items() if count > 0)
