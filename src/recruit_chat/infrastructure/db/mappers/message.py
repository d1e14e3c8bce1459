from __future__ import annotations

from recruit_chat.domain.entities.message import Message
from recruit_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        recipient_id=model.recipient_id,
        body=model.body,
        client_msg_id=model.client_msg_id,
        sent_at=model.sent_at,
        read_at=model.read_at,
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        conversation_id=entity.conversation_id,
        sender_id=entity.sender_id,
        recipient_id=entity.recipient_id,
        body=entity.body,
        client_msg_id=entity.client_msg_id,
        sent_at=entity.sent_at,
        read_at=entity.read_at,
    )
