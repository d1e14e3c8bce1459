from __future__ import annotations

from typing import Protocol

from recruit_chat.domain.entities.account import Account
from recruit_chat.domain.entities.credit_transaction import CreditTransaction


class AccountReader(Protocol):
    async def get_by_id(self, account_id: int) -> Account | None: ...


class LedgerWriter(Protocol):
    async def debit(self, account_id: int, amount: int) -> int | None:
        """Atomically subtract ``amount`` if the balance covers it.

        Returns the new balance, or None when the balance is too low.
        """
        ...

    async def record(self, transaction: CreditTransaction) -> None: ...
