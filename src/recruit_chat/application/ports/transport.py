from __future__ import annotations

from typing import Protocol

from recruit_chat.infrastructure.ws.protocol import WsFrame


class TransportClosed(Exception):
    """Raised by ``Transport.receive`` when the connection is gone."""

    def __init__(self, reason: str = "transport closed", *, code: int | None = None) -> None:
        self.reason = reason
        self.code = code
        super().__init__(reason)


class Transport(Protocol):
    """One bidirectional event channel to the transport server.

    ``open`` raises ``AuthenticationError`` when the token is rejected and
    ``TransportError`` for anything network related.
    """

    async def open(self, token: str) -> None: ...

    async def send(self, frame: WsFrame) -> None: ...

    async def receive(self) -> WsFrame: ...

    async def close(self) -> None: ...
