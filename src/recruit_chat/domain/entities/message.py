from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

MAX_BODY_LENGTH = 5000


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: int
    recipient_id: int
    body: str
    client_msg_id: UUID
    sent_at: datetime
    read_at: datetime | None = None

    def is_unread_by(self, account_id: int) -> bool:
        return self.recipient_id == account_id and self.read_at is None
