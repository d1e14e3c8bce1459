from __future__ import annotations

from typing import Protocol

from recruit_chat.application.repositories.access_grant import (
    AccessGrantReader,
    AccessGrantWriter,
)
from recruit_chat.application.repositories.account import AccountReader, LedgerWriter
from recruit_chat.application.repositories.application_link import ApplicationLinkReader
from recruit_chat.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from recruit_chat.application.repositories.message import MessageReader, MessageWriter


class UnitOfWork(Protocol):
    accounts: AccountReader
    ledger: LedgerWriter
    grants: AccessGrantReader
    grants_w: AccessGrantWriter
    applications: ApplicationLinkReader
    conversations: ConversationReader
    conversations_w: ConversationWriter
    messages: MessageReader
    messages_w: MessageWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
