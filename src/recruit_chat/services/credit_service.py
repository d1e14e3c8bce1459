from __future__ import annotations

import logging
import uuid

from recruit_chat.application.dto.access import UnlockResult
from recruit_chat.application.dto.principal import Principal
from recruit_chat.application.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    UnlockInconsistentError,
    ValidationError,
)
from recruit_chat.application.ports.clock import Clock, system_clock
from recruit_chat.application.uow import UnitOfWork
from recruit_chat.domain.entities.access_grant import AccessGrant
from recruit_chat.domain.entities.credit_transaction import CreditTransaction
from recruit_chat.domain.value_objects.enums import TransactionCategory

logger = logging.getLogger(__name__)


async def get_balance(principal: Principal, uow: UnitOfWork) -> int:
    account = await uow.accounts.get_by_id(principal.account_id)
    if account is None:
        raise NotFoundError("Account not found")
    return account.balance


async def unlock_profile(
    principal: Principal,
    target_id: int,
    cost: int,
    uow: UnitOfWork,
    clock: Clock = system_clock,
) -> UnlockResult:
    """Debit ``cost`` credits and grant messaging access to ``target_id``.

    Debit, ledger entry and grant commit together or not at all. A pair that
    is already unlocked (including a concurrent unlock winning the unique
    constraint) is reported as ``already_unlocked`` without a second debit.
    """
    payer_id = principal.account_id
    if payer_id == target_id:
        raise ValidationError("Cannot unlock your own profile")

    target = await uow.accounts.get_by_id(target_id)
    if target is None or not target.active:
        raise NotFoundError("Account not found")

    if await uow.grants.get(payer_id, target_id) is not None:
        logger.info("Profile %s already unlocked by %s", target_id, payer_id)
        return await _already_unlocked(payer_id, cost, uow)

    payer = await uow.accounts.get_by_id(payer_id)
    if payer is None:
        raise NotFoundError("Account not found")
    if payer.balance < cost:
        raise InsufficientBalanceError(balance=payer.balance, cost=cost)

    new_balance = await uow.ledger.debit(payer_id, cost)
    if new_balance is None:
        await uow.rollback()
        raise InsufficientBalanceError(balance=payer.balance, cost=cost)

    now = clock.now()
    try:
        created = await uow.grants_w.create(
            AccessGrant(payer_id=payer_id, target_id=target_id, cost=cost, granted_at=now)
        )
        if not created:
            await uow.rollback()
            logger.info("Concurrent unlock of %s by %s lost the race", target_id, payer_id)
            return await _already_unlocked(payer_id, cost, uow)

        await uow.ledger.record(
            CreditTransaction(
                id=uuid.uuid4(),
                account_id=payer_id,
                category=TransactionCategory.PROFILE_UNLOCK,
                amount=-cost,
                balance_after=new_balance,
                target_id=target_id,
                created_at=now,
            )
        )
        await uow.commit()
    except Exception as exc:
        logger.exception("Unlock of %s by %s failed after debit", target_id, payer_id)
        await uow.rollback()
        raise UnlockInconsistentError(
            "Unlock could not be confirmed; retry the unlock"
        ) from exc

    logger.info(
        "Profile %s unlocked by %s (cost=%d, balance=%d)",
        target_id, payer_id, cost, new_balance,
    )
    return UnlockResult(
        unlocked=True,
        already_unlocked=False,
        cost=cost,
        remaining_balance=new_balance,
    )


async def _already_unlocked(payer_id: int, cost: int, uow: UnitOfWork) -> UnlockResult:
    payer = await uow.accounts.get_by_id(payer_id)
    if payer is None:
        raise NotFoundError("Account not found")
    return UnlockResult(
        unlocked=True,
        already_unlocked=True,
        cost=cost,
        remaining_balance=payer.balance,
    )
