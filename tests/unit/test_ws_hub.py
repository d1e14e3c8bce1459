from __future__ import annotations

import json
import uuid

import pytest

from recruit_chat.api.v1.routers import ws
from recruit_chat.infrastructure.ws.manager import ConnectionHub
from recruit_chat.infrastructure.ws.protocol import (
    MESSAGE_READ,
    TYPING_START,
    USER_PRESENCE,
    WsFrame,
)


class FakeSocket:
    def __init__(self, *, broken: bool = False) -> None:
        self.broken = broken
        self.sent: list[dict] = []

    async def send_text(self, raw: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(raw))


def test_unregister_reports_last_socket():
    hub = ConnectionHub()
    first, second = FakeSocket(), FakeSocket()
    hub.register(first, 1)
    hub.register(second, 1)

    assert hub.unregister(first, 1) is False
    assert 1 in hub
    assert hub.unregister(second, 1) is True
    assert 1 not in hub
    assert hub.unregister(second, 1) is False


def test_join_and_leave():
    hub = ConnectionHub()
    conversation_id = uuid.uuid4()
    ws = FakeSocket()
    hub.register(ws, 1)

    hub.join(1, conversation_id)
    hub.join(2, conversation_id)
    hub.leave(2, conversation_id)
    assert hub.joined(conversation_id) == frozenset({1})

    hub.unregister(ws, 1)
    assert hub.joined(conversation_id) == frozenset()


@pytest.mark.asyncio
async def test_send_to_accounts_reaches_every_socket():
    hub = ConnectionHub()
    phone, laptop, other = FakeSocket(), FakeSocket(), FakeSocket()
    hub.register(phone, 1)
    hub.register(laptop, 1)
    hub.register(other, 2)

    await hub.send_to_accounts([1], WsFrame(type="message:new", data={"body": "hi"}))

    assert phone.sent == laptop.sent == [{"type": "message:new", "data": {"body": "hi"}, "id": None}]
    assert other.sent == []


@pytest.mark.asyncio
async def test_dead_sockets_are_dropped():
    hub = ConnectionHub()
    dead = FakeSocket(broken=True)
    hub.register(dead, 1)

    await hub.send_to_accounts([1], WsFrame(type="pong"))

    assert 1 not in hub


@pytest.mark.asyncio
async def test_broadcast_excludes_subject():
    hub = ConnectionHub()
    subject, watcher = FakeSocket(), FakeSocket()
    hub.register(subject, 1)
    hub.register(watcher, 2)

    await hub.broadcast(WsFrame(type=USER_PRESENCE, data={"user_id": 1, "is_online": True}), exclude=1)

    assert subject.sent == []
    assert watcher.sent[0]["data"] == {"user_id": 1, "is_online": True}


@pytest.mark.asyncio
async def test_bus_events_reach_local_sockets():
    recipient, subject = FakeSocket(), FakeSocket()
    ws.hub.register(recipient, 7)
    ws.hub.register(subject, 42)
    try:
        await ws.dispatch_bus_event(
            "message:new", {"account_ids": [7], "payload": {"body": "from another node"}},
        )
        await ws.dispatch_bus_event(USER_PRESENCE, {"user_id": 42, "is_online": False})
        await ws.dispatch_bus_event("something:else", {})
    finally:
        ws.hub.unregister(recipient, 7)
        ws.hub.unregister(subject, 42)

    assert [frame["type"] for frame in recipient.sent] == ["message:new", USER_PRESENCE]
    assert recipient.sent[0]["data"] == {"body": "from another node"}
    assert subject.sent == []


@pytest.mark.asyncio
async def test_bus_typing_reaches_other_joined_accounts():
    conversation_id = uuid.uuid4()
    typist, reader, bystander = FakeSocket(), FakeSocket(), FakeSocket()
    ws.hub.register(typist, 42)
    ws.hub.register(reader, 7)
    ws.hub.register(bystander, 8)
    ws.hub.join(42, conversation_id)
    ws.hub.join(7, conversation_id)
    try:
        await ws.dispatch_bus_event(
            TYPING_START, {"conversation_id": str(conversation_id), "user_id": 42},
        )
        await ws.dispatch_bus_event(TYPING_START, {"conversation_id": "nope", "user_id": 42})
    finally:
        ws.hub.unregister(typist, 42)
        ws.hub.unregister(reader, 7)
        ws.hub.unregister(bystander, 8)

    assert reader.sent == [{
        "type": TYPING_START,
        "data": {"conversation_id": str(conversation_id), "user_id": 42},
        "id": None,
    }]
    assert typist.sent == []
    assert bystander.sent == []


@pytest.mark.asyncio
async def test_bus_read_receipt_reaches_listed_accounts():
    sender, other = FakeSocket(), FakeSocket()
    ws.hub.register(sender, 42)
    ws.hub.register(other, 8)
    receipt = {"message_ids": [str(uuid.uuid4())], "read_by": 7}
    try:
        await ws.dispatch_bus_event(MESSAGE_READ, {"account_ids": [42], "payload": receipt})
    finally:
        ws.hub.unregister(sender, 42)
        ws.hub.unregister(other, 8)

    assert sender.sent[0]["type"] == MESSAGE_READ
    assert sender.sent[0]["data"] == receipt
    assert other.sent == []
