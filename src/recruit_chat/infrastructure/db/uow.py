from __future__ import annotations

from types import TracebackType
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession

from recruit_chat.infrastructure.db.repositories.access_grant import (
    AccessGrantReaderRepo,
    AccessGrantWriterRepo,
)
from recruit_chat.infrastructure.db.repositories.account import (
    AccountReaderRepo,
    LedgerWriterRepo,
)
from recruit_chat.infrastructure.db.repositories.application_link import ApplicationLinkReaderRepo
from recruit_chat.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from recruit_chat.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)


class SqlAlchemyUoW:
    """Unit of work over one AsyncSession; debit, ledger and grant share its transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.accounts = AccountReaderRepo(session)
        self.ledger = LedgerWriterRepo(session)
        self.grants = AccessGrantReaderRepo(session)
        self.grants_w = AccessGrantWriterRepo(session)
        self.applications = ApplicationLinkReaderRepo(session)
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()
