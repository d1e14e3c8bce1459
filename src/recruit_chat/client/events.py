"""Typed fan-out signals with self-disposing subscriptions."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Handler = Callable[[T], "Awaitable[None] | None"]


class Subscription:
    """Handle returned by ``Signal.subscribe``; disposing it unsubscribes."""

    __slots__ = ("_signal", "_handler")

    def __init__(self, signal: Signal[Any], handler: Handler[Any]) -> None:
        self._signal: Signal[Any] | None = signal
        self._handler = handler

    @property
    def active(self) -> bool:
        return self._signal is not None

    def dispose(self) -> None:
        if self._signal is not None:
            self._signal.unsubscribe(self._handler)
            self._signal = None

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()


class Signal(Generic[T]):
    """Multi-subscriber event. Handlers may be plain or async callables."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[Handler[T]] = []

    def __len__(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Handler[T]) -> Subscription:
        self._handlers.append(handler)
        return Subscription(self, handler)

    def unsubscribe(self, handler: Handler[T]) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    async def emit(self, payload: T) -> None:
        # Snapshot: handlers may unsubscribe while being called.
        for handler in list(self._handlers):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Error in %s handler %r", self.name, handler)


class SubscriptionGroup:
    """Collects the subscriptions of one component so they go away together."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def add(self, subscription: Subscription) -> Subscription:
        self._subscriptions.append(subscription)
        return subscription

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()
