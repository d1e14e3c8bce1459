from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from recruit_chat.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_by_pair(self, participant_low: int, participant_high: int) -> Conversation | None: ...

    async def list_for_account(
        self, account_id: int, *, page: int = 1, limit: int = 20,
    ) -> list[Conversation]: ...


class ConversationWriter(Protocol):
    async def create_if_not_exists(self, conversation: Conversation) -> tuple[Conversation, bool]:
        """Insert conversation. On a pair conflict return the existing one."""
        ...

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None: ...
