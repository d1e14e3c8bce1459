"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import UUID

import pytest

from recruit_chat.api.v1.schemas.access import AccessCheckResponse, UnlockResponse
from recruit_chat.api.v1.schemas.conversation import ConversationResponse
from recruit_chat.api.v1.schemas.credits import BalanceResponse
from recruit_chat.api.v1.schemas.message import MessagePage, MessageResponse
from recruit_chat.application.dto.principal import Principal
from recruit_chat.application.exceptions import InsufficientBalanceError
from recruit_chat.application.ports.transport import TransportClosed
from recruit_chat.domain.entities.access_grant import AccessGrant
from recruit_chat.domain.entities.account import Account
from recruit_chat.domain.entities.application_link import ApplicationLink
from recruit_chat.domain.entities.conversation import Conversation, ordered_pair
from recruit_chat.domain.entities.credit_transaction import CreditTransaction
from recruit_chat.domain.entities.message import Message
from recruit_chat.domain.value_objects.enums import AccessReason, AccountRole
from recruit_chat.infrastructure.ws.protocol import ACK, WsFrame

RECRUITER_ID = 42
CANDIDATE_ID = 7


@pytest.fixture
def recruiter_principal() -> Principal:
    return Principal(account_id=RECRUITER_ID, role=AccountRole.RECRUITER)


@pytest.fixture
def candidate_principal() -> Principal:
    return Principal(account_id=CANDIDATE_ID, role=AccountRole.CANDIDATE)


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(account_id=1, role=AccountRole.ADMIN)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the running loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


# -- entities ------------------------------------------------------------


def make_account(
    account_id: int,
    *,
    role: str = AccountRole.CANDIDATE,
    balance: int = 0,
    active: bool = True,
) -> Account:
    return Account(
        id=account_id,
        role=role,
        balance=balance,
        active=active,
        created_at=datetime.now(timezone.utc),
    )


def make_conversation(
    a: int = RECRUITER_ID,
    b: int = CANDIDATE_ID,
    *,
    conversation_id: UUID | None = None,
) -> Conversation:
    low, high = ordered_pair(a, b)
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        participant_low=low,
        participant_high=high,
        context=None,
        last_message_at=None,
        created_at=datetime.now(timezone.utc),
    )


def make_message(
    conversation: Conversation,
    *,
    sender_id: int = RECRUITER_ID,
    body: str = "hello",
    sent_at: datetime | None = None,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation.id,
        sender_id=sender_id,
        recipient_id=conversation.counterpart_of(sender_id),
        body=body,
        client_msg_id=uuid.uuid4(),
        sent_at=sent_at or datetime.now(timezone.utc),
    )


# -- in-memory unit of work -----------------------------------------------


@dataclass
class FakeAccountReader:
    _store: dict[int, Account] = field(default_factory=dict)

    async def get_by_id(self, account_id: int) -> Account | None:
        return self._store.get(account_id)


@dataclass
class FakeLedgerWriter:
    _accounts: FakeAccountReader
    transactions: list[CreditTransaction] = field(default_factory=list)
    debits: int = 0

    async def debit(self, account_id: int, amount: int) -> int | None:
        account = self._accounts._store.get(account_id)
        if account is None or account.balance < amount:
            return None
        self.debits += 1
        self._accounts._store[account_id] = Account(
            id=account.id,
            role=account.role,
            balance=account.balance - amount,
            active=account.active,
            created_at=account.created_at,
        )
        return account.balance - amount

    async def record(self, transaction: CreditTransaction) -> None:
        self.transactions.append(transaction)


@dataclass
class FakeGrantReader:
    _grants: dict[tuple[int, int], AccessGrant] = field(default_factory=dict)

    async def get(self, payer_id: int, target_id: int) -> AccessGrant | None:
        return self._grants.get((payer_id, target_id))

    def add(self, payer_id: int, target_id: int, cost: int = 50) -> None:
        self._grants[(payer_id, target_id)] = AccessGrant(
            payer_id=payer_id,
            target_id=target_id,
            cost=cost,
            granted_at=datetime.now(timezone.utc),
        )


@dataclass
class FakeGrantWriter:
    _reader: FakeGrantReader
    # Simulates a concurrent request winning the unique constraint.
    conflict: bool = False

    async def create(self, grant: AccessGrant) -> bool:
        key = (grant.payer_id, grant.target_id)
        if self.conflict or key in self._reader._grants:
            return False
        self._reader._grants[key] = grant
        return True


@dataclass
class FakeApplicationReader:
    _links: list[ApplicationLink] = field(default_factory=list)

    async def latest_between(self, recruiter_id: int, candidate_id: int) -> ApplicationLink | None:
        matches = [
            link for link in self._links
            if link.recruiter_id == recruiter_id and link.candidate_id == candidate_id
        ]
        return max(matches, key=lambda link: link.applied_at) if matches else None

    def add(self, recruiter_id: int, candidate_id: int, job_title: str = "Backend Engineer") -> ApplicationLink:
        link = ApplicationLink(
            id=uuid.uuid4(),
            recruiter_id=recruiter_id,
            candidate_id=candidate_id,
            job_title=job_title,
            applied_at=datetime.now(timezone.utc),
        )
        self._links.append(link)
        return link


@dataclass
class FakeConversationReader:
    _store: dict[UUID, Conversation] = field(default_factory=dict)

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.get(conversation_id)

    async def get_by_pair(self, participant_low: int, participant_high: int) -> Conversation | None:
        for conv in self._store.values():
            if conv.participants == (participant_low, participant_high):
                return conv
        return None

    async def list_for_account(self, account_id: int, *, page: int = 1, limit: int = 20) -> list[Conversation]:
        convs = [c for c in self._store.values() if c.has_participant(account_id)]
        return convs[(page - 1) * limit: page * limit]


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader
    touched: list[tuple[UUID, datetime]] = field(default_factory=list)

    async def create_if_not_exists(self, conversation: Conversation) -> tuple[Conversation, bool]:
        existing = await self._reader.get_by_pair(*conversation.participants)
        if existing is not None:
            return existing, False
        self._reader._store[conversation.id] = conversation
        return conversation, True

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None:
        self.touched.append((conversation_id, ts))
        conversation = self._reader._store.get(conversation_id)
        if conversation is not None:
            self._reader._store[conversation_id] = replace(conversation, last_message_at=ts)


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    def _for(self, conversation_id: UUID) -> list[Message]:
        return sorted(
            (m for m in self._messages if m.conversation_id == conversation_id),
            key=lambda m: (m.sent_at, m.id),
        )

    async def list_page(self, conversation_id: UUID, *, page: int = 1, limit: int = 50) -> tuple[list[Message], int]:
        ordered = self._for(conversation_id)
        end = len(ordered) - (page - 1) * limit
        return ordered[max(0, end - limit): max(0, end)], len(ordered)

    async def list_since(self, conversation_id: UUID, since: datetime, *, limit: int = 100) -> list[Message]:
        return [m for m in self._for(conversation_id) if m.sent_at > since][:limit]

    async def count(self, conversation_id: UUID) -> int:
        return len(self._for(conversation_id))


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        for m in self._reader._messages:
            if (
                m.conversation_id == message.conversation_id
                and m.sender_id == message.sender_id
                and m.client_msg_id == message.client_msg_id
            ):
                return m, False
        self._reader._messages.append(message)
        return message, True

    async def mark_read(
        self, conversation_id: UUID, reader_id: int, message_ids: list[UUID], read_at: datetime,
    ) -> list[UUID]:
        changed: list[UUID] = []
        for index, m in enumerate(self._reader._messages):
            if m.conversation_id == conversation_id and m.id in message_ids and m.is_unread_by(reader_id):
                self._reader._messages[index] = replace(m, read_at=read_at)
                changed.append(m.id)
        return changed


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    accounts: FakeAccountReader = field(default_factory=FakeAccountReader)
    ledger: FakeLedgerWriter | None = None
    grants: FakeGrantReader = field(default_factory=FakeGrantReader)
    grants_w: FakeGrantWriter | None = None
    applications: FakeApplicationReader = field(default_factory=FakeApplicationReader)
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    commits: int = 0
    rollbacks: int = 0

    def __post_init__(self) -> None:
        if self.ledger is None:
            self.ledger = FakeLedgerWriter(self.accounts)
        if self.grants_w is None:
            self.grants_w = FakeGrantWriter(self.grants)
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    def add_account(self, account_id: int, **kwargs: Any) -> Account:
        account = make_account(account_id, **kwargs)
        self.accounts._store[account_id] = account
        return account

    def add_conversation(self, conversation: Conversation) -> Conversation:
        self.conversations._store[conversation.id] = conversation
        return conversation

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


@pytest.fixture
def uow() -> FakeUoW:
    fake = FakeUoW()
    fake.add_account(RECRUITER_ID, role=AccountRole.RECRUITER, balance=100)
    fake.add_account(CANDIDATE_ID, role=AccountRole.CANDIDATE)
    return fake


# -- client side fakes ----------------------------------------------------


class FakeTransport:
    """Scriptable ``Transport``: tests push frames and drops, and queue open failures."""

    def __init__(self) -> None:
        self.open_errors: list[Exception] = []
        self.open_gate: asyncio.Event | None = None
        self.opened_with: list[str] = []
        self.sent: list[WsFrame] = []
        self.closes = 0
        self.is_open = False
        # Called for each sent frame that carries an id; the result is pushed back.
        self.responder: Callable[[WsFrame], WsFrame | None] | None = None
        self._incoming: asyncio.Queue[WsFrame | TransportClosed] = asyncio.Queue()

    async def open(self, token: str) -> None:
        self.opened_with.append(token)
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.open_errors:
            raise self.open_errors.pop(0)
        self._incoming = asyncio.Queue()
        self.is_open = True

    async def send(self, frame: WsFrame) -> None:
        if not self.is_open:
            raise TransportClosed("not open")
        self.sent.append(frame)
        if self.responder is not None and frame.id is not None:
            reply = self.responder(frame)
            if reply is not None:
                self._incoming.put_nowait(reply)

    async def receive(self) -> WsFrame:
        item = await self._incoming.get()
        if isinstance(item, TransportClosed):
            self.is_open = False
            raise item
        return item

    async def close(self) -> None:
        self.closes += 1
        self.is_open = False

    def push(self, event_type: str, data: Any = None) -> None:
        self._incoming.put_nowait(WsFrame(type=event_type, data=data))

    def ack(self, request_id: str, **data: Any) -> None:
        self._incoming.put_nowait(WsFrame(type=ACK, id=request_id, data=data))

    def drop(self, reason: str = "network down", code: int | None = None) -> None:
        self._incoming.put_nowait(TransportClosed(reason, code=code))

    def sent_of(self, event_type: str) -> list[WsFrame]:
        return [frame for frame in self.sent if frame.type == event_type]


def message_response(
    conversation: ConversationResponse,
    *,
    sender_id: int,
    body: str = "hi",
    client_msg_id: UUID | None = None,
    sent_at: datetime | None = None,
) -> MessageResponse:
    return MessageResponse(
        id=uuid.uuid4(),
        conversation_id=conversation.id,
        sender_id=sender_id,
        recipient_id=conversation.counterpart_of(sender_id),
        body=body,
        client_msg_id=client_msg_id or uuid.uuid4(),
        sent_at=sent_at or datetime.now(timezone.utc),
    )


class FakeChatApi:
    """In-memory ``ChatApi`` with the server's unlock semantics."""

    def __init__(self, account_id: int = RECRUITER_ID, *, balance: int = 100, cost: int = 50) -> None:
        self.account_id = account_id
        self.balance = balance
        self.cost = cost
        self.reasons: dict[int, AccessReason] = {}
        self.unlocked: set[int] = set()
        self.unlock_calls = 0
        self.unlock_gate: asyncio.Event | None = None
        self.unlock_error: Exception | None = None
        self.unlock_gates: dict[int, asyncio.Event] = {}
        self.unlock_errors: dict[int, Exception] = {}
        self.conversations: dict[int, ConversationResponse] = {}
        self.messages: dict[UUID, list[MessageResponse]] = {}
        self.list_calls: list[tuple[UUID, int]] = []

    async def get_balance(self) -> BalanceResponse:
        return BalanceResponse(account_id=self.account_id, balance=self.balance)

    async def check_access(self, target_id: int) -> AccessCheckResponse:
        if target_id in self.unlocked:
            reason = AccessReason.PROFILE_UNLOCKED
        else:
            reason = self.reasons.get(target_id, AccessReason.NO_ACCESS)
        return AccessCheckResponse(
            can_message=reason not in (AccessReason.NO_ACCESS, AccessReason.SELF),
            reason=reason,
        )

    async def unlock(self, target_id: int) -> UnlockResponse:
        self.unlock_calls += 1
        if self.unlock_gate is not None:
            await self.unlock_gate.wait()
        if target_id in self.unlock_gates:
            await self.unlock_gates[target_id].wait()
        if self.unlock_error is not None:
            raise self.unlock_error
        if target_id in self.unlock_errors:
            raise self.unlock_errors[target_id]
        if target_id in self.unlocked:
            return UnlockResponse(
                unlocked=True, already_unlocked=True, cost=self.cost, remaining_balance=self.balance,
            )
        if self.balance < self.cost:
            raise InsufficientBalanceError(balance=self.balance, cost=self.cost)
        self.balance -= self.cost
        self.unlocked.add(target_id)
        return UnlockResponse(
            unlocked=True, already_unlocked=False, cost=self.cost, remaining_balance=self.balance,
        )

    async def create_or_get_conversation(self, counterpart_id: int) -> ConversationResponse:
        if counterpart_id not in self.conversations:
            self.conversations[counterpart_id] = make_conversation_response(self.account_id, counterpart_id)
        return self.conversations[counterpart_id]

    async def list_messages(self, conversation_id: UUID, *, page: int = 1, limit: int = 50) -> MessagePage:
        self.list_calls.append((conversation_id, page))
        ordered = sorted(self.messages.get(conversation_id, []), key=lambda m: (m.sent_at, str(m.id)))
        end = len(ordered) - (page - 1) * limit
        items = ordered[max(0, end - limit): max(0, end)]
        return MessagePage(items=items, page=page, limit=limit, total=len(ordered))

    def store(self, message: MessageResponse) -> MessageResponse:
        self.messages.setdefault(message.conversation_id, []).append(message)
        return message


def make_conversation_response(a: int = RECRUITER_ID, b: int = CANDIDATE_ID) -> ConversationResponse:
    low, high = ordered_pair(a, b)
    return ConversationResponse(
        id=uuid.uuid4(),
        participants=[low, high],
        context=None,
        last_message_at=None,
        created_at=datetime.now(timezone.utc),
    )


def minutes_ago(minutes: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=minutes)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def api() -> FakeChatApi:
    return FakeChatApi()
