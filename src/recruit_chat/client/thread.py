"""Conversation / Thread Controller: the selected thread and its messages."""
from __future__ import annotations

import itertools
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as SchemaError

from recruit_chat.api.v1.schemas.conversation import ConversationResponse
from recruit_chat.api.v1.schemas.message import MessageResponse
from recruit_chat.application.exceptions import (
    AccessDeniedError,
    AppError,
    NotConnectedError,
    NotFoundError,
    SendFailedError,
    TransportError,
    ValidationError,
)
from recruit_chat.application.ports.chat_api import ChatApi
from recruit_chat.client.access import AccessController
from recruit_chat.client.connection import ConnectionManager, ConnectionStatus
from recruit_chat.client.events import Signal, SubscriptionGroup
from recruit_chat.domain.entities.message import MAX_BODY_LENGTH
from recruit_chat.domain.value_objects.enums import DeliveryState
from recruit_chat.infrastructure.ws.protocol import (
    CHAT_MARK_READ,
    CONVERSATION_JOIN,
    CONVERSATION_LEAVE,
    MESSAGE_NEW,
    MESSAGE_READ,
    MESSAGE_SEND,
    TYPING_START,
    TYPING_STOP,
)

logger = logging.getLogger(__name__)

_sequence = itertools.count()


@dataclass(slots=True, eq=False)
class LocalMessage:
    """A message as the thread shows it, including sends not yet confirmed.

    ``state`` only moves forward: pending to sent or pending to failed. The
    one exception is failed to sent, taken when a push or history re-fetch
    shows the server stored the message after all (the ack was lost). A sent
    message never changes state again; only ``read_at`` may still be set.
    """

    client_msg_id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: int
    body: str
    state: DeliveryState = DeliveryState.PENDING
    id: uuid.UUID | None = None
    recipient_id: int | None = None
    sent_at: datetime | None = None
    error: str | None = None
    read_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    seq: int = field(default_factory=lambda: next(_sequence))

    @classmethod
    def from_response(cls, response: MessageResponse) -> LocalMessage:
        return cls(
            client_msg_id=response.client_msg_id,
            conversation_id=response.conversation_id,
            sender_id=response.sender_id,
            recipient_id=response.recipient_id,
            body=response.body,
            state=DeliveryState.SENT,
            id=response.id,
            sent_at=response.sent_at,
            read_at=response.read_at,
        )

    @property
    def is_confirmed(self) -> bool:
        return self.state == DeliveryState.SENT

    def mark_sent(self, message_id: uuid.UUID | None, sent_at: datetime | None) -> bool:
        """Confirm the message. Also accepted from ``failed`` when the server has it."""
        if self.state == DeliveryState.SENT:
            return False
        self.state = DeliveryState.SENT
        self.id = message_id
        self.sent_at = sent_at or self.created_at
        self.error = None
        return True

    def mark_read(self, read_at: datetime | None) -> bool:
        if read_at is None or self.read_at is not None:
            return False
        self.read_at = read_at
        return True

    def mark_failed(self, error: str) -> bool:
        if self.state != DeliveryState.PENDING:
            return False
        self.state = DeliveryState.FAILED
        self.error = error
        return True

    def retried(self) -> LocalMessage:
        """Fresh pending copy that keeps the client message id."""
        return LocalMessage(
            client_msg_id=self.client_msg_id,
            conversation_id=self.conversation_id,
            sender_id=self.sender_id,
            recipient_id=self.recipient_id,
            body=self.body,
        )


@dataclass(frozen=True, slots=True)
class TypingStatus:
    conversation_id: uuid.UUID
    user_id: int
    is_typing: bool


class ConversationController:
    """Owns the selected conversation of one session.

    At most one conversation is joined on the transport at a time. Messages
    are keyed by ``(sender_id, client_msg_id)``, which is what the server
    deduplicates on, so a push, an ack and a history re-fetch of the same
    message collapse into one entry.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        api: ChatApi,
        access: AccessController,
        account_id: int,
        *,
        send_timeout: float = 10.0,
        history_limit: int = 50,
    ) -> None:
        self._connection = connection
        self._api = api
        self._access = access
        self.account_id = account_id
        self._send_timeout = send_timeout
        self._history_limit = history_limit

        self._selected: ConversationResponse | None = None
        # Bumped on every selection; late results for an older one are dropped.
        self._selection = 0
        self._messages: dict[tuple[int, uuid.UUID], LocalMessage] = {}
        self._ids: set[uuid.UUID] = set()
        self._history_total = 0
        self._typing: set[int] = set()
        self._own_typing = False

        self.on_messages_change: Signal[list[LocalMessage]] = Signal("thread.on_messages_change")
        self.on_typing: Signal[TypingStatus] = Signal("thread.on_typing")

        self._subscriptions = SubscriptionGroup()
        self._subscriptions.add(connection.on(MESSAGE_NEW).subscribe(self._on_message_new))
        self._subscriptions.add(connection.on(MESSAGE_READ).subscribe(self._on_message_read))
        self._subscriptions.add(connection.on(TYPING_START).subscribe(self._on_typing_start))
        self._subscriptions.add(connection.on(TYPING_STOP).subscribe(self._on_typing_stop))
        self._subscriptions.add(connection.on_reconnect.subscribe(self._on_reconnect))

    @property
    def selected(self) -> ConversationResponse | None:
        return self._selected

    @property
    def messages(self) -> list[LocalMessage]:
        confirmed = sorted(
            (m for m in self._messages.values() if m.is_confirmed),
            key=lambda m: (m.sent_at, str(m.id)),
        )
        local = sorted(
            (m for m in self._messages.values() if not m.is_confirmed),
            key=lambda m: m.seq,
        )
        return confirmed + local

    @property
    def typing_users(self) -> frozenset[int]:
        """Accounts currently typing in the selected conversation."""
        return frozenset(self._typing)

    @property
    def has_history(self) -> bool:
        return self._history_total > 0 or any(m.is_confirmed for m in self._messages.values())

    def get_message(self, client_msg_id: uuid.UUID) -> LocalMessage | None:
        return self._messages.get((self.account_id, client_msg_id))

    async def select_conversation(self, conversation: ConversationResponse) -> None:
        """Make ``conversation`` the active thread and load its newest page."""
        previous = self._selected
        if previous is not None and previous.id != conversation.id:
            await self._stop_own_typing(previous)
            await self._connection.emit(CONVERSATION_LEAVE, {"conversation_id": str(previous.id)})
            self._access.forget(previous.counterpart_of(self.account_id))

        self._selection += 1
        selection = self._selection
        self._selected = conversation
        self._messages.clear()
        self._ids.clear()
        self._history_total = 0
        self._typing.clear()
        await self.on_messages_change.emit([])

        await self._connection.emit(CONVERSATION_JOIN, {"conversation_id": str(conversation.id)})
        await self._access.check_access(conversation.counterpart_of(self.account_id))
        if selection == self._selection:
            await self._load_history(selection)

    async def send_message(self, body: str) -> LocalMessage:
        """Send ``body`` to the selected conversation.

        Rejected before anything reaches the wire when there is no selection,
        the body is empty, the transport is down or messaging is locked.
        Raises ``SendFailedError`` (with the failed message attached) when the
        server does not acknowledge the send.
        """
        conversation = self._selected
        if conversation is None:
            raise ValidationError("No conversation selected")
        body = body.strip()
        if not body:
            raise ValidationError("Message body is empty")
        if len(body) > MAX_BODY_LENGTH:
            raise ValidationError("Message body is too long")
        if not self._connection.is_connected:
            raise NotConnectedError("Transport is not connected")

        counterpart_id = conversation.counterpart_of(self.account_id)
        if not (self._access.can_message(counterpart_id) or self.has_history):
            decision = self._access.decision_for(counterpart_id)
            raise AccessDeniedError(reason=decision.reason if decision else None)

        message = LocalMessage(
            client_msg_id=uuid.uuid4(),
            conversation_id=conversation.id,
            sender_id=self.account_id,
            recipient_id=counterpart_id,
            body=body,
        )
        self._messages[(self.account_id, message.client_msg_id)] = message
        await self._changed()
        return await self._deliver(message)

    async def retry_message(self, client_msg_id: uuid.UUID) -> LocalMessage:
        """Resend a failed message under the same client message id."""
        failed = self.get_message(client_msg_id)
        if failed is None:
            raise NotFoundError("Message not found")
        if failed.state != DeliveryState.FAILED:
            raise ValidationError(f"Only failed messages can be retried (state: {failed.state})")
        if not self._connection.is_connected:
            raise NotConnectedError("Transport is not connected")

        message = failed.retried()
        self._messages[(self.account_id, client_msg_id)] = message
        await self._changed()
        return await self._deliver(message)

    async def set_typing(self, is_typing: bool) -> bool:
        """Tell the counterpart whether this account is typing.

        Only changes reach the wire. Returns False when nothing was sent.
        """
        conversation = self._selected
        if conversation is None or is_typing == self._own_typing:
            return False
        event = TYPING_START if is_typing else TYPING_STOP
        sent = await self._connection.emit(event, {"conversation_id": str(conversation.id)})
        if sent:
            self._own_typing = is_typing
        return sent

    async def mark_read(self) -> int:
        """Report the counterpart's unread messages in the thread as read.

        Returns how many messages were newly marked. Raises ``AppError`` when
        the server rejects the request.
        """
        conversation = self._selected
        if conversation is None:
            return 0
        unread = [
            m for m in self._messages.values()
            if m.sender_id != self.account_id and m.id is not None and m.read_at is None
        ]
        if not unread:
            return 0

        ack = await self._connection.request(
            CHAT_MARK_READ,
            {"conversation_id": str(conversation.id), "message_ids": [str(m.id) for m in unread]},
            timeout=self._send_timeout,
        )
        if not ack.get("success"):
            raise AppError(ack.get("detail") or "Mark read was rejected")
        return await self._apply_read(
            conversation.id, ack.get("message_ids") or [], ack.get("read_at"),
        )

    async def close(self) -> None:
        self._subscriptions.close()
        if self._selected is not None:
            await self._stop_own_typing(self._selected)
            await self._connection.emit(
                CONVERSATION_LEAVE, {"conversation_id": str(self._selected.id)},
            )
            self._access.forget(self._selected.counterpart_of(self.account_id))
        self._selected = None
        self._selection += 1
        self._messages.clear()
        self._ids.clear()
        self._typing.clear()

    # -- internals --------------------------------------------------------

    async def _deliver(self, message: LocalMessage) -> LocalMessage:
        payload = {
            "conversation_id": str(message.conversation_id),
            "body": message.body,
            "client_msg_id": str(message.client_msg_id),
        }
        try:
            ack = await self._connection.request(MESSAGE_SEND, payload, timeout=self._send_timeout)
        except TransportError as exc:
            await self._failed(message, str(exc), exc.code)
            raise SendFailedError(str(exc), message=message, reason_code=exc.code) from exc

        if not ack.get("success"):
            reason_code = ack.get("reason_code")
            detail = ack.get("detail") or "Message was rejected"
            await self._failed(message, detail, reason_code)
            raise SendFailedError(detail, message=message, reason_code=reason_code)

        stored = ack.get("message")
        if stored is None:
            message.mark_sent(None, None)
        else:
            response = MessageResponse.model_validate(stored)
            if self._selected is not None and self._selected.id == response.conversation_id:
                self._merge(response)
            else:
                message.mark_sent(response.id, response.sent_at)
        await self._changed(message.conversation_id)
        return message

    async def _failed(self, message: LocalMessage, error: str, reason_code: str | None) -> None:
        if message.mark_failed(error):
            logger.warning(
                "Send of %s failed (%s): %s", message.client_msg_id, reason_code, error,
            )
            await self._changed(message.conversation_id)

    def _merge(self, response: MessageResponse) -> bool:
        """Fold one server message into the thread. Returns True on change."""
        key = (response.sender_id, response.client_msg_id)
        local = self._messages.get(key)
        if response.id in self._ids:
            return local is not None and local.mark_read(response.read_at)
        if local is not None and local.conversation_id == response.conversation_id:
            local.recipient_id = response.recipient_id
            changed = local.mark_sent(response.id, response.sent_at)
            changed = local.mark_read(response.read_at) or changed
        else:
            self._messages[key] = LocalMessage.from_response(response)
            changed = True
        self._ids.add(response.id)
        return changed

    async def _load_history(self, selection: int) -> None:
        conversation = self._selected
        if conversation is None:
            return
        page = await self._api.list_messages(conversation.id, page=1, limit=self._history_limit)
        if selection != self._selection:
            return
        self._history_total = page.total
        for item in page.items:
            self._merge(item)
        await self._changed()

    async def _fill_gap(self, selection: int) -> None:
        """Re-fetch newest pages until they overlap what the thread already holds."""
        conversation = self._selected
        if conversation is None:
            return
        known = set(self._ids)
        changed = False
        page_number = 1
        while True:
            page = await self._api.list_messages(
                conversation.id, page=page_number, limit=self._history_limit,
            )
            if selection != self._selection:
                return
            self._history_total = page.total
            for item in page.items:
                changed = self._merge(item) or changed
            overlap = any(item.id in known for item in page.items)
            if overlap or not known or page_number >= page.total_pages:
                break
            page_number += 1
        logger.info(
            "Gap fill of %s fetched %d page(s)", conversation.id, page_number,
        )
        if changed:
            await self._changed()

    async def _changed(self, conversation_id: uuid.UUID | None = None) -> None:
        if conversation_id is not None and (
            self._selected is None or self._selected.id != conversation_id
        ):
            return
        await self.on_messages_change.emit(self.messages)

    async def _on_message_new(self, data: Any) -> None:
        try:
            response = MessageResponse.model_validate(data)
        except SchemaError:
            logger.warning("Ignoring malformed %s payload: %r", MESSAGE_NEW, data)
            return
        if self._selected is None or response.conversation_id != self._selected.id:
            return
        if self._merge(response):
            await self._changed()
        await self._typing_changed(response.sender_id, False)

    async def _on_message_read(self, data: Any) -> None:
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed %s payload: %r", MESSAGE_READ, data)
            return
        try:
            conversation_id = uuid.UUID(str(data["conversation_id"]))
        except (KeyError, ValueError):
            logger.warning("Ignoring malformed %s payload: %r", MESSAGE_READ, data)
            return
        await self._apply_read(conversation_id, data.get("message_ids") or [], data.get("read_at"))

    async def _apply_read(self, conversation_id: uuid.UUID, message_ids: Any, read_at: Any) -> int:
        if self._selected is None or self._selected.id != conversation_id or not message_ids:
            return 0
        try:
            ids = {uuid.UUID(str(message_id)) for message_id in message_ids}
            stamp = datetime.fromisoformat(str(read_at))
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed read receipt for %s", conversation_id)
            return 0
        marked = sum(1 for m in self._messages.values() if m.id in ids and m.mark_read(stamp))
        if marked:
            await self._changed()
        return marked

    async def _on_typing_start(self, data: Any) -> None:
        await self._on_typing_event(data, True)

    async def _on_typing_stop(self, data: Any) -> None:
        await self._on_typing_event(data, False)

    async def _on_typing_event(self, data: Any, is_typing: bool) -> None:
        try:
            conversation_id = uuid.UUID(str(data["conversation_id"]))
            user_id = int(data["user_id"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed typing payload: %r", data)
            return
        if self._selected is None or self._selected.id != conversation_id:
            return
        if user_id != self.account_id:
            await self._typing_changed(user_id, is_typing)

    async def _typing_changed(self, user_id: int, is_typing: bool) -> None:
        if is_typing == (user_id in self._typing) or self._selected is None:
            return
        if is_typing:
            self._typing.add(user_id)
        else:
            self._typing.discard(user_id)
        await self.on_typing.emit(TypingStatus(self._selected.id, user_id, is_typing))

    async def _stop_own_typing(self, conversation: ConversationResponse) -> None:
        if self._own_typing:
            self._own_typing = False
            await self._connection.emit(TYPING_STOP, {"conversation_id": str(conversation.id)})

    async def _on_reconnect(self, _status: ConnectionStatus) -> None:
        conversation = self._selected
        if conversation is None:
            return
        selection = self._selection
        await self._connection.emit(CONVERSATION_JOIN, {"conversation_id": str(conversation.id)})
        await self._fill_gap(selection)
