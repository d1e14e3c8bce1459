"""Redis Pub/Sub fan-out between server instances."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as aioredis

from recruit_chat.application.ports.bus import BusEventHandler
from recruit_chat.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher.

    Every envelope carries ``origin`` so the publishing instance can skip its
    own events; it has already delivered them to its local sockets.
    """

    def __init__(self, redis: aioredis.Redis, channel: str, origin: str) -> None:
        self._redis = redis
        self._channel = channel
        self._origin = origin

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        raw = serialize_event(event_type, payload, self._origin)
        await self._redis.publish(self._channel, raw)


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches foreign events."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: BusEventHandler,
        *,
        origin: str,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._origin = origin
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis Pub/Sub subscriber stopped")

    async def handle_raw(self, raw: str | bytes) -> None:
        envelope = deserialize_event(raw)
        if envelope.origin == self._origin:
            return
        await self._callback(envelope.event, envelope.data)

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    await self.handle_raw(message["data"])
                except Exception:
                    logger.exception("Error processing pubsub message")
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
