from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_chat.domain.entities.account import Account
from recruit_chat.domain.entities.credit_transaction import CreditTransaction
from recruit_chat.infrastructure.db.mappers import account as mapper
from recruit_chat.infrastructure.db.models.account import AccountModel


class AccountReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, account_id: int) -> Account | None:
        result = await self._session.get(AccountModel, account_id, populate_existing=True)
        return mapper.model_to_entity(result) if result else None


class LedgerWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def debit(self, account_id: int, amount: int) -> int | None:
        # Conditional update: two concurrent debits can never both pass the check.
        stmt = (
            update(AccountModel)
            .where(
                AccountModel.id == account_id,
                AccountModel.balance >= amount,
            )
            .values(balance=AccountModel.balance - amount)
            .returning(AccountModel.balance)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def record(self, transaction: CreditTransaction) -> None:
        self._session.add(mapper.transaction_to_model(transaction))
        await self._session.flush()
