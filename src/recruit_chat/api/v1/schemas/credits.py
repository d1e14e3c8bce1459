from __future__ import annotations

from pydantic import BaseModel


class BalanceResponse(BaseModel):
    account_id: int
    balance: int
