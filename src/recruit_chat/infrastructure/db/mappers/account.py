from __future__ import annotations

from recruit_chat.domain.entities.account import Account
from recruit_chat.domain.entities.credit_transaction import CreditTransaction
from recruit_chat.infrastructure.db.models.account import AccountModel, CreditTransactionModel


def model_to_entity(model: AccountModel) -> Account:
    return Account(
        id=model.id,
        role=model.role,
        balance=model.balance,
        active=model.active,
        created_at=model.created_at,
    )


def transaction_to_model(entity: CreditTransaction) -> CreditTransactionModel:
    return CreditTransactionModel(
        id=entity.id,
        account_id=entity.account_id,
        category=entity.category,
        amount=entity.amount,
        balance_after=entity.balance_after,
        target_id=entity.target_id,
        created_at=entity.created_at,
    )
