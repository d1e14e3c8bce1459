from __future__ import annotations

from recruit_chat.application.dto.access import AccessDecision
from recruit_chat.application.dto.principal import Principal
from recruit_chat.application.exceptions import NotFoundError
from recruit_chat.application.policies.permissions import resolve_messaging_access
from recruit_chat.application.uow import UnitOfWork


async def check_access(
    principal: Principal,
    target_id: int,
    uow: UnitOfWork,
) -> AccessDecision:
    target = await uow.accounts.get_by_id(target_id)
    if target is None or not target.active:
        raise NotFoundError("Account not found")
    return await resolve_messaging_access(principal.account_id, target_id, uow)
