from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_chat.domain.entities.message import Message
from recruit_chat.infrastructure.db.mappers import message as mapper
from recruit_chat.infrastructure.db.models.message import MessageModel


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_page(
        self,
        conversation_id: UUID,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Message], int]:
        """Page 1 is the newest ``limit`` messages; each page is returned oldest-first."""
        total = await self.count(conversation_id)
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.sent_at.desc(), MessageModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        items = [mapper.model_to_entity(m) for m in result.scalars().all()]
        items.reverse()
        return items, total

    async def list_since(
        self,
        conversation_id: UUID,
        since: datetime,
        *,
        limit: int = 100,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.sent_at > since,
            )
            .order_by(MessageModel.sent_at.asc(), MessageModel.id.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count(self, conversation_id: UUID) -> int:
        stmt = select(func.count()).select_from(MessageModel).where(
            MessageModel.conversation_id == conversation_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message idempotently. Returns (message, created_flag)."""
        model = mapper.entity_to_model(message)
        values = {
            "id": model.id,
            "conversation_id": model.conversation_id,
            "sender_id": model.sender_id,
            "recipient_id": model.recipient_id,
            "body": model.body,
            "client_msg_id": model.client_msg_id,
            "sent_at": model.sent_at,
        }
        stmt = (
            pg_insert(MessageModel)
            .values(**values)
            .on_conflict_do_nothing(constraint="uq_message_idempotency")
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()

        if row is not None:
            return mapper.model_to_entity(row), True

        # Retried send: hand back what was stored the first time.
        existing = await self.get_by_client_msg_id(
            message.conversation_id,
            message.sender_id,
            message.client_msg_id,
        )
        assert existing is not None
        return existing, False

    async def get_by_client_msg_id(
        self,
        conversation_id: UUID,
        sender_id: int,
        client_msg_id: UUID,
    ) -> Message | None:
        stmt = select(MessageModel).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.sender_id == sender_id,
            MessageModel.client_msg_id == client_msg_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def mark_read(
        self,
        conversation_id: UUID,
        reader_id: int,
        message_ids: list[UUID],
        read_at: datetime,
    ) -> list[UUID]:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.recipient_id == reader_id,
                MessageModel.id.in_(message_ids),
                MessageModel.read_at.is_(None),
            )
            .values(read_at=read_at)
            .returning(MessageModel.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
