"""In-process registry of chat sockets."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import WebSocket

from recruit_chat.infrastructure.ws.protocol import WsFrame

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Tracks the sockets of each account on this instance and which
    conversations each account has joined.
    """

    def __init__(self) -> None:
        self._connections: dict[int, set[WebSocket]] = {}
        self._joined: dict[UUID, set[int]] = {}

    def __contains__(self, account_id: int) -> bool:
        return account_id in self._connections

    def register(self, ws: WebSocket, account_id: int) -> None:
        self._connections.setdefault(account_id, set()).add(ws)
        logger.debug("WS connected: %s (accounts=%d)", account_id, len(self._connections))

    def unregister(self, ws: WebSocket, account_id: int) -> bool:
        """Forget ``ws``. Returns True if it was the account's last local socket."""
        conns = self._connections.get(account_id)
        if not conns or ws not in conns:
            return False
        conns.discard(ws)
        if conns:
            return False
        del self._connections[account_id]
        for members in self._joined.values():
            members.discard(account_id)
        logger.debug("WS disconnected: %s", account_id)
        return True

    def join(self, account_id: int, conversation_id: UUID) -> None:
        self._joined.setdefault(conversation_id, set()).add(account_id)

    def leave(self, account_id: int, conversation_id: UUID) -> None:
        members = self._joined.get(conversation_id)
        if members:
            members.discard(account_id)
            if not members:
                del self._joined[conversation_id]

    def joined(self, conversation_id: UUID) -> frozenset[int]:
        return frozenset(self._joined.get(conversation_id, ()))

    async def send(self, ws: WebSocket, frame: WsFrame) -> None:
        await ws.send_text(frame.model_dump_json())

    async def send_to_accounts(self, account_ids: set[int] | list[int], frame: WsFrame) -> None:
        raw = frame.model_dump_json()
        dead: list[tuple[int, WebSocket]] = []
        for account_id in set(account_ids):
            for ws in list(self._connections.get(account_id, ())):
                try:
                    await ws.send_text(raw)
                except Exception:
                    dead.append((account_id, ws))
        for account_id, ws in dead:
            self.unregister(ws, account_id)

    async def broadcast(self, frame: WsFrame, *, exclude: int | None = None) -> None:
        await self.send_to_accounts(
            [account_id for account_id in self._connections if account_id != exclude], frame,
        )
