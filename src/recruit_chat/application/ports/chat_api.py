from __future__ import annotations

from typing import Protocol
from uuid import UUID

from recruit_chat.api.v1.schemas.access import AccessCheckResponse, UnlockResponse
from recruit_chat.api.v1.schemas.conversation import ConversationResponse
from recruit_chat.api.v1.schemas.credits import BalanceResponse
from recruit_chat.api.v1.schemas.message import MessagePage


class ChatApi(Protocol):
    """REST collaborators consumed by the messaging client."""

    async def get_balance(self) -> BalanceResponse: ...

    async def check_access(self, target_id: int) -> AccessCheckResponse: ...

    async def unlock(self, target_id: int) -> UnlockResponse: ...

    async def create_or_get_conversation(self, counterpart_id: int) -> ConversationResponse: ...

    async def list_messages(
        self, conversation_id: UUID, *, page: int = 1, limit: int = 50,
    ) -> MessagePage: ...
