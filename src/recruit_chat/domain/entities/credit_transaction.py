from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class CreditTransaction:
    id: UUID
    account_id: int
    category: str
    amount: int
    balance_after: int
    target_id: int | None
    created_at: datetime
