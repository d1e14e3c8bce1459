from __future__ import annotations

import uuid
from datetime import datetime

from recruit_chat.application.dto.principal import Principal
from recruit_chat.application.exceptions import ForbiddenError, ValidationError
from recruit_chat.application.policies.permissions import (
    assert_can_message,
    assert_conversation_access,
)
from recruit_chat.application.ports.clock import Clock, system_clock
from recruit_chat.application.uow import UnitOfWork
from recruit_chat.domain.entities.conversation import Conversation
from recruit_chat.domain.entities.message import MAX_BODY_LENGTH, Message


async def send_message(
    conversation_id: uuid.UUID,
    principal: Principal,
    client_msg_id: uuid.UUID,
    body: str,
    uow: UnitOfWork,
    clock: Clock = system_clock,
) -> tuple[Message, bool, Conversation]:
    """Create a message idempotently.

    Returns (message, created, conversation). A repeated ``client_msg_id``
    from the same sender returns the stored message with created=False.
    """
    body = body.strip()
    if not body:
        raise ValidationError("Message body is empty")
    if len(body) > MAX_BODY_LENGTH:
        raise ValidationError("Message body is too long")

    conversation = await uow.conversations.get_by_id(conversation_id)
    conversation = assert_conversation_access(principal, conversation)
    if not conversation.has_participant(principal.account_id):
        raise ForbiddenError("Only participants can send messages")
    recipient_id = conversation.counterpart_of(principal.account_id)

    # Once a thread has history it stays open in both directions.
    if await uow.messages.count(conversation_id) == 0:
        await assert_can_message(principal.account_id, recipient_id, uow)

    msg = Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=principal.account_id,
        recipient_id=recipient_id,
        body=body,
        client_msg_id=client_msg_id,
        sent_at=clock.now(),
    )

    msg, created = await uow.messages_w.create_if_not_exists(msg)

    if created:
        await uow.conversations_w.touch_last_message_at(conversation_id, msg.sent_at)
        await uow.commit()

    return msg, created, conversation


async def list_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    page: int,
    limit: int,
    uow: UnitOfWork,
) -> tuple[list[Message], int]:
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)
    return await uow.messages.list_page(conversation_id, page=page, limit=limit)


async def sync_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    since: datetime,
    limit: int,
    uow: UnitOfWork,
) -> list[Message]:
    """Messages sent after ``since``, oldest first, for reconnect gap fill."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)
    return await uow.messages.list_since(conversation_id, since, limit=limit)


async def mark_read(
    conversation_id: uuid.UUID,
    principal: Principal,
    message_ids: list[uuid.UUID],
    uow: UnitOfWork,
    clock: Clock = system_clock,
) -> tuple[list[uuid.UUID], datetime, Conversation]:
    """Mark messages addressed to the caller as read.

    Ids that are unknown, already read or sent by the caller are skipped, so
    repeating the call is harmless. Returns (changed ids, read_at, conversation).
    """
    if not message_ids:
        raise ValidationError("message_ids must not be empty")

    conversation = await uow.conversations.get_by_id(conversation_id)
    conversation = assert_conversation_access(principal, conversation)
    if not conversation.has_participant(principal.account_id):
        raise ForbiddenError("Only participants can mark messages as read")

    read_at = clock.now()
    changed = await uow.messages_w.mark_read(
        conversation_id, principal.account_id, list(dict.fromkeys(message_ids)), read_at,
    )
    if changed:
        await uow.commit()
    return changed, read_at, conversation
