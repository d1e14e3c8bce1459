from __future__ import annotations

import pytest

from recruit_chat.infrastructure.presence.registry import (
    InMemoryPresenceRegistry,
    RedisPresenceRegistry,
)


class FakeRedisHash:
    """The three hash commands the registry uses."""

    def __init__(self) -> None:
        self.data: dict[str, dict[str, int]] = {}

    async def hincrby(self, key: str, field: str, amount: int) -> int:
        bucket = self.data.setdefault(key, {})
        bucket[field] = bucket.get(field, 0) + amount
        return bucket[field]

    async def hdel(self, key: str, field: str) -> int:
        return 1 if self.data.get(key, {}).pop(field, None) is not None else 0

    async def hgetall(self, key: str) -> dict[bytes, bytes]:
        return {f.encode(): str(v).encode() for f, v in self.data.get(key, {}).items()}


@pytest.fixture(params=["memory", "redis"])
def registry(request):
    if request.param == "memory":
        return InMemoryPresenceRegistry()
    return RedisPresenceRegistry(FakeRedisHash(), "presence:test")


@pytest.mark.asyncio
async def test_first_socket_brings_account_online(registry):
    assert await registry.add(7) is True
    assert await registry.add(7) is False
    assert await registry.online() == [7]


@pytest.mark.asyncio
async def test_last_socket_takes_account_offline(registry):
    await registry.add(7)
    await registry.add(7)

    assert await registry.remove(7) is False
    assert await registry.online() == [7]
    assert await registry.remove(7) is True
    assert await registry.online() == []


@pytest.mark.asyncio
async def test_online_is_sorted(registry):
    for account_id in (9, 3, 5):
        await registry.add(account_id)

    assert await registry.online() == [3, 5, 9]


@pytest.mark.asyncio
async def test_remove_unknown_account_is_not_a_transition(registry):
    assert await registry.remove(42) is False
    assert await registry.online() == []
