from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

import pytest

from recruit_chat.infrastructure.bus.redis_pubsub import RedisPubSubPublisher, RedisPubSubSubscriber
from recruit_chat.infrastructure.bus.serializer import deserialize_event, serialize_event


class FakeRedis:
    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []

    async def publish(self, channel: str, raw: str) -> int:
        self.published.append((channel, raw))
        return 1


def test_serializer_encodes_uuid_and_datetime():
    message_id = uuid.uuid4()
    sent_at = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    raw = serialize_event("message:new", {"id": message_id, "sent_at": sent_at}, "node-a")

    decoded = json.loads(raw)
    assert decoded["event"] == "message:new"
    assert decoded["origin"] == "node-a"
    assert decoded["data"]["id"] == str(message_id)
    assert datetime.fromisoformat(decoded["data"]["sent_at"]) == sent_at

    envelope = deserialize_event(raw.encode())
    assert envelope.event == "message:new"
    assert envelope.origin == "node-a"
    assert envelope.data["id"] == str(message_id)


@pytest.mark.asyncio
async def test_untagged_events_are_delivered():
    received: list[str] = []

    async def callback(event_type, data):
        received.append(event_type)

    subscriber = RedisPubSubSubscriber(FakeRedis(), "chat:events", callback, origin="node-a")
    await subscriber.handle_raw(json.dumps({"event": "user:presence", "data": {"user_id": 1}}))

    assert received == ["user:presence"]


@pytest.mark.asyncio
async def test_publisher_tags_origin():
    redis = FakeRedis()
    publisher = RedisPubSubPublisher(redis, "chat:events", "node-a")

    await publisher.publish("user:presence", {"user_id": 7, "is_online": True})

    [(channel, raw)] = redis.published
    assert channel == "chat:events"
    assert json.loads(raw)["origin"] == "node-a"


@pytest.mark.asyncio
async def test_subscriber_skips_own_events():
    received: list[tuple[str, dict]] = []

    async def callback(event_type, data):
        received.append((event_type, data))

    subscriber = RedisPubSubSubscriber(FakeRedis(), "chat:events", callback, origin="node-a")

    await subscriber.handle_raw(serialize_event("user:presence", {"user_id": 7}, "node-a"))
    await subscriber.handle_raw(serialize_event("user:presence", {"user_id": 8}, "node-b"))

    assert received == [("user:presence", {"user_id": 8})]
