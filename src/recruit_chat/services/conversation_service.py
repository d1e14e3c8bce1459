from __future__ import annotations

import uuid

from recruit_chat.application.dto.principal import Principal
from recruit_chat.application.exceptions import NotFoundError
from recruit_chat.application.policies.permissions import (
    assert_can_message,
    assert_conversation_access,
)
from recruit_chat.application.ports.clock import Clock, system_clock
from recruit_chat.application.uow import UnitOfWork
from recruit_chat.domain.entities.conversation import (
    Conversation,
    ConversationContext,
    ordered_pair,
)
from recruit_chat.domain.value_objects.enums import ContextType


async def determine_context(
    account_id: int,
    counterpart_id: int,
    uow: UnitOfWork,
) -> ConversationContext | None:
    """Pick what the conversation is about. An application wins over an unlock."""
    for recruiter_id, candidate_id in ((account_id, counterpart_id), (counterpart_id, account_id)):
        link = await uow.applications.latest_between(recruiter_id, candidate_id)
        if link is not None:
            return ConversationContext(
                type=ContextType.APPLICATION,
                context_id=link.id,
                title=link.job_title,
            )

    for payer_id, target_id in ((account_id, counterpart_id), (counterpart_id, account_id)):
        if await uow.grants.get(payer_id, target_id) is not None:
            return ConversationContext(
                type=ContextType.PROFILE_UNLOCK,
                context_id=None,
                title="Unlocked profile",
            )

    return None


async def create_or_get_conversation(
    principal: Principal,
    counterpart_id: int,
    uow: UnitOfWork,
    clock: Clock = system_clock,
) -> tuple[Conversation, bool]:
    """Return the single conversation between the caller and ``counterpart_id``.

    Returns (conversation, created). Creating one requires messaging access.
    """
    counterpart = await uow.accounts.get_by_id(counterpart_id)
    if counterpart is None or not counterpart.active:
        raise NotFoundError("Account not found")

    low, high = ordered_pair(principal.account_id, counterpart_id)
    existing = await uow.conversations.get_by_pair(low, high)
    if existing is not None:
        return existing, False

    await assert_can_message(principal.account_id, counterpart_id, uow)

    conversation = Conversation(
        id=uuid.uuid4(),
        participant_low=low,
        participant_high=high,
        context=await determine_context(principal.account_id, counterpart_id, uow),
        last_message_at=None,
        created_at=clock.now(),
    )
    conversation, created = await uow.conversations_w.create_if_not_exists(conversation)
    if created:
        await uow.commit()
    return conversation, created


async def list_conversations(
    principal: Principal,
    page: int,
    limit: int,
    uow: UnitOfWork,
) -> list[Conversation]:
    return await uow.conversations.list_for_account(
        principal.account_id, page=page, limit=limit,
    )


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return assert_conversation_access(principal, conversation)
