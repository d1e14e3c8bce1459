from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_chat.domain.entities.conversation import Conversation
from recruit_chat.infrastructure.db.mappers import conversation as mapper
from recruit_chat.infrastructure.db.models.conversation import ConversationModel


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def get_by_pair(self, participant_low: int, participant_high: int) -> Conversation | None:
        stmt = select(ConversationModel).where(
            ConversationModel.participant_low == participant_low,
            ConversationModel.participant_high == participant_high,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_for_account(
        self,
        account_id: int,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(
                or_(
                    ConversationModel.participant_low == account_id,
                    ConversationModel.participant_high == account_id,
                )
            )
            .order_by(
                ConversationModel.last_message_at.desc().nullslast(),
                ConversationModel.created_at.desc(),
                ConversationModel.id,
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(self, conversation: Conversation) -> tuple[Conversation, bool]:
        """Insert conversation. On a pair conflict return the existing one."""
        model = mapper.entity_to_model(conversation)
        stmt = (
            pg_insert(ConversationModel)
            .values(
                id=model.id,
                participant_low=model.participant_low,
                participant_high=model.participant_high,
                context_type=model.context_type,
                context_id=model.context_id,
                context_title=model.context_title,
                last_message_at=model.last_message_at,
                created_at=model.created_at,
            )
            .on_conflict_do_nothing(constraint="uq_conversation_pair")
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        existing = await ConversationReaderRepo(self._session).get_by_pair(
            conversation.participant_low, conversation.participant_high,
        )
        assert existing is not None
        return existing, False

    async def touch_last_message_at(
        self,
        conversation_id: UUID,
        ts: datetime,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_message_at=ts)
        )
        await self._session.execute(stmt)
