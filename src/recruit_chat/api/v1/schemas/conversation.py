from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ConversationContextResponse(BaseModel):
    type: str
    context_id: UUID | None = None
    title: str

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    id: UUID
    participants: list[int] = Field(min_length=2, max_length=2)
    context: ConversationContextResponse | None = None
    last_message_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

    def counterpart_of(self, account_id: int) -> int:
        low, high = self.participants
        return high if account_id == low else low


class CreateConversationRequest(BaseModel):
    counterpart_id: int = Field(gt=0)
