from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from recruit_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_page(
        self, conversation_id: UUID, *, page: int = 1, limit: int = 50,
    ) -> tuple[list[Message], int]:
        """Newest-first page, returned oldest-first, plus the total count."""
        ...

    async def list_since(
        self, conversation_id: UUID, since: datetime, *, limit: int = 100,
    ) -> list[Message]: ...

    async def count(self, conversation_id: UUID) -> int: ...


class MessageWriter(Protocol):
    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message. Return (message, created). If conflict on client_msg_id → return existing."""
        ...

    async def mark_read(
        self, conversation_id: UUID, reader_id: int, message_ids: list[UUID], read_at: datetime,
    ) -> list[UUID]:
        """Stamp unread messages addressed to ``reader_id``. Returns the ids actually changed."""
        ...
