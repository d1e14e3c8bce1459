from __future__ import annotations

import pytest

from recruit_chat.client.events import Signal, SubscriptionGroup


@pytest.mark.asyncio
async def test_emit_calls_sync_and_async_handlers_in_order():
    calls: list[str] = []
    signal: Signal[int] = Signal("test")

    def first(value: int) -> None:
        calls.append(f"first:{value}")

    async def second(value: int) -> None:
        calls.append(f"second:{value}")

    signal.subscribe(first)
    signal.subscribe(second)
    await signal.emit(3)

    assert calls == ["first:3", "second:3"]


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_others():
    seen: list[int] = []
    signal: Signal[int] = Signal("test")

    def broken(_value: int) -> None:
        raise RuntimeError("boom")

    signal.subscribe(broken)
    signal.subscribe(seen.append)
    await signal.emit(1)

    assert seen == [1]


@pytest.mark.asyncio
async def test_dispose_is_idempotent_and_unsubscribes():
    seen: list[int] = []
    signal: Signal[int] = Signal("test")
    subscription = signal.subscribe(seen.append)

    subscription.dispose()
    subscription.dispose()
    await signal.emit(1)

    assert seen == []
    assert not subscription.active
    assert len(signal) == 0


@pytest.mark.asyncio
async def test_handler_may_unsubscribe_itself_during_emit():
    seen: list[str] = []
    signal: Signal[int] = Signal("test")

    def once(_value: int) -> None:
        seen.append("once")
        subscription.dispose()

    subscription = signal.subscribe(once)
    signal.subscribe(lambda _v: seen.append("always"))

    await signal.emit(1)
    await signal.emit(2)

    assert seen == ["once", "always", "always"]


@pytest.mark.asyncio
async def test_group_close_disposes_everything():
    seen: list[int] = []
    a: Signal[int] = Signal("a")
    b: Signal[int] = Signal("b")
    group = SubscriptionGroup()
    group.add(a.subscribe(seen.append))
    group.add(b.subscribe(seen.append))

    group.close()
    await a.emit(1)
    await b.emit(2)

    assert seen == []


def test_subscription_context_manager():
    signal: Signal[int] = Signal("test")
    with signal.subscribe(lambda _v: None):
        assert len(signal) == 1
    assert len(signal) == 0
