from __future__ import annotations

from recruit_chat.application.dto.access import AccessDecision
from recruit_chat.application.dto.principal import Principal
from recruit_chat.application.exceptions import (
    AccessDeniedError,
    ForbiddenError,
    NotFoundError,
)
from recruit_chat.application.uow import UnitOfWork
from recruit_chat.domain.entities.conversation import Conversation
from recruit_chat.domain.value_objects.enums import AccessReason


async def resolve_messaging_access(
    sender_id: int,
    recipient_id: int,
    uow: UnitOfWork,
) -> AccessDecision:
    """Decide whether ``sender_id`` may message ``recipient_id``.

    Grants are directional, but a grant bought by the recipient also lets the
    sender answer. An application between the two opens the pair either way.
    """
    if sender_id == recipient_id:
        return AccessDecision(can_message=False, reason=AccessReason.SELF)

    if (
        await uow.applications.latest_between(sender_id, recipient_id) is not None
        or await uow.applications.latest_between(recipient_id, sender_id) is not None
    ):
        return AccessDecision(can_message=True, reason=AccessReason.HAS_APPLICATION)

    if await uow.grants.get(sender_id, recipient_id) is not None:
        return AccessDecision(can_message=True, reason=AccessReason.PROFILE_UNLOCKED)

    if await uow.grants.get(recipient_id, sender_id) is not None:
        return AccessDecision(can_message=True, reason=AccessReason.UNLOCKED_BY_COUNTERPART)

    return AccessDecision(can_message=False, reason=AccessReason.NO_ACCESS)


def assert_conversation_access(
    principal: Principal,
    conversation: Conversation | None,
) -> Conversation:
    """Raise if conversation doesn't exist or principal is not one of its two participants."""
    if conversation is None:
        raise NotFoundError("Conversation not found")

    if principal.is_admin:
        return conversation

    if not conversation.has_participant(principal.account_id):
        raise ForbiddenError("Not a participant of this conversation")

    return conversation


async def assert_can_message(
    sender_id: int,
    recipient_id: int,
    uow: UnitOfWork,
) -> AccessDecision:
    decision = await resolve_messaging_access(sender_id, recipient_id, uow)
    if not decision.can_message:
        raise AccessDeniedError(
            f"Account {sender_id} cannot message account {recipient_id}",
            reason=decision.reason,
        )
    return decision
