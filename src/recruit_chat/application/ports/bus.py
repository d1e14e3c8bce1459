from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

# (event_type, data) of an event published by another server instance.
BusEventHandler = Callable[[str, dict[str, Any]], Awaitable[None]]


class EventPublisher(Protocol):
    """Fans ``message:new`` and ``user:presence`` out to the other instances.

    The publishing instance has already delivered the event to its own
    sockets; subscribers on that instance skip it.
    """

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None: ...
