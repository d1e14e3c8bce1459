"""One logged-in account's messaging panel: connection, presence, access, thread."""
from __future__ import annotations

import logging

from recruit_chat.api.v1.schemas.conversation import ConversationResponse
from recruit_chat.application.ports.auth import TokenProvider
from recruit_chat.application.ports.chat_api import ChatApi
from recruit_chat.application.ports.transport import Transport
from recruit_chat.client.access import AccessController
from recruit_chat.client.backoff import ExponentialBackoff
from recruit_chat.client.config import ClientSettings
from recruit_chat.client.connection import ConnectionManager
from recruit_chat.client.presence import PresenceTracker
from recruit_chat.client.thread import ConversationController

logger = logging.getLogger(__name__)


class MessagingSession:
    """Wires the client components for ``account_id`` and owns their lifetime.

    Components are built here and handed to each other explicitly; nothing is
    shared between sessions.
    """

    def __init__(
        self,
        account_id: int,
        transport: Transport,
        api: ChatApi,
        token_provider: TokenProvider,
        *,
        settings: ClientSettings | None = None,
    ) -> None:
        settings = settings or ClientSettings()
        self.account_id = account_id
        self.api = api
        self._token_provider = token_provider

        self.connection = ConnectionManager(
            transport,
            backoff=ExponentialBackoff(
                settings.RECONNECT_BASE_DELAY,
                settings.RECONNECT_MAX_DELAY,
                jitter=settings.RECONNECT_JITTER,
            ),
            token_provider=token_provider,
            connect_timeout=settings.CONNECT_TIMEOUT,
            heartbeat_interval=settings.HEARTBEAT_SECONDS,
        )
        self.presence = PresenceTracker(self.connection)
        self.access = AccessController(api, unlock_cost=settings.UNLOCK_COST)
        self.thread = ConversationController(
            self.connection,
            api,
            self.access,
            account_id,
            send_timeout=settings.SEND_TIMEOUT,
            history_limit=settings.HISTORY_PAGE_SIZE,
        )

    async def __aenter__(self) -> MessagingSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        await self.connection.connect(self._token_provider())
        await self.access.refresh_balance()

    async def open_conversation_with(self, counterpart_id: int) -> ConversationResponse:
        """Check access, then create or fetch the thread and select it.

        An existing thread opens even without a grant; creating a new one is
        refused by the server with ``AccessDeniedError``.
        """
        await self.access.check_access(counterpart_id)
        conversation = await self.api.create_or_get_conversation(counterpart_id)
        await self.thread.select_conversation(conversation)
        logger.info("Opened conversation %s with %s", conversation.id, counterpart_id)
        return conversation

    async def close(self) -> None:
        await self.thread.close()
        self.presence.close()
        self.access.clear()
        await self.connection.disconnect()
