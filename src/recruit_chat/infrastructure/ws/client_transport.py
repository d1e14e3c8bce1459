"""WebSocket implementation of the client ``Transport`` port."""
from __future__ import annotations

import logging
from urllib.parse import urlencode

from pydantic import ValidationError as SchemaError
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus, InvalidURI

from recruit_chat.application.exceptions import AuthenticationError, TransportError
from recruit_chat.application.ports.transport import TransportClosed
from recruit_chat.infrastructure.ws.protocol import AUTH_FAILED_CLOSE_CODE, WsFrame

logger = logging.getLogger(__name__)

_AUTH_STATUSES = frozenset({401, 403})


class WebSocketTransport:
    def __init__(self, url: str, *, open_timeout: float | None = 10.0) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._ws: ClientConnection | None = None

    async def open(self, token: str) -> None:
        await self.close()
        separator = "&" if "?" in self._url else "?"
        url = f"{self._url}{separator}{urlencode({'token': token})}"
        try:
            self._ws = await connect(url, open_timeout=self._open_timeout)
        except InvalidStatus as exc:
            status = exc.response.status_code
            if status in _AUTH_STATUSES:
                raise AuthenticationError(f"Handshake rejected ({status})") from exc
            raise TransportError(f"Handshake failed ({status})") from exc
        except InvalidURI as exc:
            raise TransportError(f"Invalid transport URL: {exc}") from exc
        except (InvalidHandshake, OSError, TimeoutError) as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
        logger.debug("WebSocket open: %s", self._url)

    async def send(self, frame: WsFrame) -> None:
        ws = self._ws
        if ws is None:
            raise TransportClosed("not open")
        try:
            await ws.send(frame.model_dump_json())
        except ConnectionClosed as exc:
            raise _closed(exc) from exc

    async def receive(self) -> WsFrame:
        ws = self._ws
        if ws is None:
            raise TransportClosed("not open")
        while True:
            try:
                raw = await ws.recv()
            except ConnectionClosed as exc:
                closed = _closed(exc)
                if closed.code == AUTH_FAILED_CLOSE_CODE:
                    logger.warning("Server closed the socket: authentication failed")
                raise closed from exc
            try:
                return WsFrame.model_validate_json(raw)
            except SchemaError:
                logger.warning("Dropping malformed frame: %.200r", raw)

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()


def _closed(exc: ConnectionClosed) -> TransportClosed:
    frame = exc.rcvd
    if frame is None:
        return TransportClosed("connection lost")
    return TransportClosed(frame.reason or f"closed ({frame.code})", code=frame.code)
