"""Presence Tracker: which counterpart accounts are online right now."""
from __future__ import annotations

import logging
from typing import Any

from recruit_chat.client.connection import CLIENT_DISCONNECT, ConnectionManager, ConnectionStatus
from recruit_chat.client.events import Signal, SubscriptionGroup
from recruit_chat.infrastructure.ws.protocol import (
    GET_ONLINE_USERS,
    ONLINE_USERS,
    USER_PRESENCE,
)

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Session-scoped set of online account ids, fed by transport events.

    The set is replaced by every bulk ``online:users`` list and then patched
    by ``user:presence`` events in arrival order, so the last event for an
    account wins. Every (re)connect asks for a fresh bulk list because events
    may have been missed while the transport was down.
    """

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection
        self._online: set[int] = set()
        self._stale = True
        self.on_change: Signal[frozenset[int]] = Signal("presence.on_change")

        self._subscriptions = SubscriptionGroup()
        self._subscriptions.add(connection.on_connect.subscribe(self._on_connect))
        self._subscriptions.add(connection.on_disconnect.subscribe(self._on_disconnect))
        self._subscriptions.add(connection.on(ONLINE_USERS).subscribe(self._on_online_users))
        self._subscriptions.add(connection.on(USER_PRESENCE).subscribe(self._on_user_presence))

    @property
    def online(self) -> frozenset[int]:
        return frozenset(self._online)

    @property
    def is_stale(self) -> bool:
        """True between a drop and the next bulk list."""
        return self._stale

    def is_online(self, user_id: int) -> bool:
        return user_id in self._online

    def close(self) -> None:
        self._subscriptions.close()

    async def _on_connect(self, _status: ConnectionStatus) -> None:
        self._stale = True
        await self._connection.emit(GET_ONLINE_USERS)

    async def _on_disconnect(self, reason: str) -> None:
        self._stale = True
        # A drop keeps the last known set for the banner; logging out ends it.
        if reason == CLIENT_DISCONNECT and self._online:
            self._online = set()
            await self.on_change.emit(self.online)

    async def _on_online_users(self, data: Any) -> None:
        ids = data.get("user_ids", []) if isinstance(data, dict) else data
        try:
            self._online = {int(user_id) for user_id in ids or []}
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed %s payload: %r", ONLINE_USERS, data)
            return
        self._stale = False
        logger.debug("Presence list replaced (%d online)", len(self._online))
        await self.on_change.emit(self.online)

    async def _on_user_presence(self, data: Any) -> None:
        try:
            user_id = int(data["user_id"])
            is_online = bool(data["is_online"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed %s payload: %r", USER_PRESENCE, data)
            return

        if is_online:
            if user_id in self._online:
                return
            self._online.add(user_id)
        else:
            if user_id not in self._online:
                return
            self._online.discard(user_id)
        await self.on_change.emit(self.online)
