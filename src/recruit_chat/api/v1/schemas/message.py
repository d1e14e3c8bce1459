from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: int
    recipient_id: int
    body: str
    client_msg_id: UUID
    sent_at: datetime
    read_at: datetime | None = None

    model_config = {"from_attributes": True}


class MessagePage(BaseModel):
    items: list[MessageResponse]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


class MarkReadRequest(BaseModel):
    conversation_id: UUID
    message_ids: list[UUID] = Field(min_length=1, max_length=500)


class MarkReadResponse(BaseModel):
    message_ids: list[UUID]
    read_at: datetime | None = None
