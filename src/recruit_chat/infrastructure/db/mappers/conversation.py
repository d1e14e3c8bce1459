from __future__ import annotations

from recruit_chat.domain.entities.conversation import Conversation, ConversationContext
from recruit_chat.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    context = None
    if model.context_type is not None:
        context = ConversationContext(
            type=model.context_type,
            context_id=model.context_id,
            title=model.context_title or "",
        )
    return Conversation(
        id=model.id,
        participant_low=model.participant_low,
        participant_high=model.participant_high,
        context=context,
        last_message_at=model.last_message_at,
        created_at=model.created_at,
    )


def entity_to_model(entity: Conversation) -> ConversationModel:
    context = entity.context
    return ConversationModel(
        id=entity.id,
        participant_low=entity.participant_low,
        participant_high=entity.participant_high,
        context_type=context.type if context else None,
        context_id=context.context_id if context else None,
        context_title=context.title if context else None,
        last_message_at=entity.last_message_at,
        created_at=entity.created_at,
    )
