from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class ConversationContext:
    type: str
    context_id: UUID | None
    title: str


@dataclass(frozen=True, slots=True)
class Conversation:
    id: UUID
    participant_low: int
    participant_high: int
    context: ConversationContext | None
    last_message_at: datetime | None
    created_at: datetime

    @property
    def participants(self) -> tuple[int, int]:
        return self.participant_low, self.participant_high

    def has_participant(self, account_id: int) -> bool:
        return account_id in (self.participant_low, self.participant_high)

    def counterpart_of(self, account_id: int) -> int:
        if account_id == self.participant_low:
            return self.participant_high
        if account_id == self.participant_high:
            return self.participant_low
        raise ValueError(f"account {account_id} is not a participant of {self.id}")


def ordered_pair(a: int, b: int) -> tuple[int, int]:
    """Participants are stored low/high so one row exists per pair."""
    return (a, b) if a <= b else (b, a)
