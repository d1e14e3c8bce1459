from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, TypeVar
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from recruit_chat.api.deps import UoWFactory, UoWFactoryDep, VerifierDep
from recruit_chat.api.v1.schemas.conversation import ConversationResponse
from recruit_chat.api.v1.schemas.message import MarkReadRequest, MarkReadResponse, MessageResponse
from recruit_chat.application.dto.principal import Principal
from recruit_chat.application.exceptions import (
    AppError,
    AuthenticationError,
    ForbiddenError,
    ValidationError,
)
from recruit_chat.application.ports.bus import EventPublisher
from recruit_chat.application.ports.presence import PresenceRegistry
from recruit_chat.config import settings
from recruit_chat.infrastructure.ws.manager import ConnectionHub
from recruit_chat.infrastructure.ws.protocol import (
    AUTH_FAILED_CLOSE_CODE,
    CHAT_ERROR,
    CHAT_MARK_READ,
    CONVERSATION_CREATED,
    CONVERSATION_JOIN,
    CONVERSATION_LEAVE,
    GET_ONLINE_USERS,
    MESSAGE_NEW,
    MESSAGE_READ,
    MESSAGE_SEND,
    MESSAGES_SYNC,
    ONLINE_USERS,
    PING,
    PONG,
    TYPING_START,
    TYPING_STOP,
    USER_PRESENCE,
    WsFrame,
    ack_frame,
)
from recruit_chat.services import conversation_service, message_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

ModelT = TypeVar("ModelT", bound=BaseModel)

hub = ConnectionHub()


# Delivered to the listed accounts: {"account_ids": [...], "payload": {...}} on the bus.
_TARGETED_EVENTS = frozenset({MESSAGE_NEW, MESSAGE_READ, CONVERSATION_CREATED})
_TYPING_EVENTS = frozenset({TYPING_START, TYPING_STOP})


async def dispatch_bus_event(event_type: str, data: dict[str, Any]) -> None:
    """Deliver an event published by another instance to local sockets."""
    if event_type in _TARGETED_EVENTS:
        await hub.send_to_accounts(
            data.get("account_ids", []), WsFrame(type=event_type, data=data["payload"]),
        )
    elif event_type in _TYPING_EVENTS:
        await _relay_typing(event_type, data)
    elif event_type == USER_PRESENCE:
        await hub.broadcast(WsFrame(type=USER_PRESENCE, data=data), exclude=data.get("user_id"))
    else:
        logger.debug("Ignoring bus event %s", event_type)


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    verifier: VerifierDep,
    uow_factory: UoWFactoryDep,
    token: str = Query(""),
) -> None:
    try:
        principal = await verifier.verify(token)
    except AuthenticationError:
        logger.debug("WS auth failed", exc_info=True)
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason="Authentication failed")
        return

    session = _ChatSocket(
        websocket,
        principal,
        uow_factory,
        presence=websocket.app.state.presence,
        publisher=getattr(websocket.app.state, "publisher", None),
    )
    await session.run()


class _ChatSocket:
    """One accepted socket: presence bookkeeping plus the inbound frame loop."""

    def __init__(
        self,
        ws: WebSocket,
        principal: Principal,
        uow_factory: UoWFactory,
        *,
        presence: PresenceRegistry,
        publisher: EventPublisher | None,
    ) -> None:
        self._ws = ws
        self._principal = principal
        self._uow_factory = uow_factory
        self._presence = presence
        self._publisher = publisher

    @property
    def account_id(self) -> int:
        return self._principal.account_id

    async def run(self) -> None:
        await self._ws.accept()
        hub.register(self._ws, self.account_id)
        heartbeat_task: asyncio.Task[None] | None = None
        try:
            if await self._presence.add(self.account_id):
                await self._presence_changed(is_online=True)
            await self._send_online_users()

            heartbeat_task = asyncio.create_task(
                self._heartbeat(), name=f"ws-heartbeat-{self.account_id}",
            )
            await self._read_loop()
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("WS error for %s", self.account_id)
        finally:
            if heartbeat_task is not None:
                heartbeat_task.cancel()
            hub.unregister(self._ws, self.account_id)
            if await self._presence.remove(self.account_id):
                await self._presence_changed(is_online=False)

    async def _heartbeat(self) -> None:
        interval = settings.WS_HEARTBEAT_SECONDS
        try:
            while True:
                await asyncio.sleep(interval)
                await hub.send(self._ws, WsFrame(type=PONG))
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("Heartbeat to %s stopped", self.account_id, exc_info=True)

    async def _read_loop(self) -> None:
        while True:
            raw = await self._ws.receive_text()
            try:
                frame = WsFrame.model_validate_json(raw)
            except SchemaError:
                await self._error("invalid_payload")
                continue

            if frame.type == PING:
                await hub.send(self._ws, WsFrame(type=PONG))
            elif frame.type == GET_ONLINE_USERS:
                await self._send_online_users()
            elif frame.type == CONVERSATION_JOIN:
                await self._handle_join(frame)
            elif frame.type == CONVERSATION_LEAVE:
                await self._handle_leave(frame)
            elif frame.type == MESSAGE_SEND:
                await self._handle_send(frame)
            elif frame.type == MESSAGES_SYNC:
                await self._handle_sync(frame)
            elif frame.type == CHAT_MARK_READ:
                await self._handle_mark_read(frame)
            elif frame.type in _TYPING_EVENTS:
                await self._handle_typing(frame)
            else:
                await self._error("unknown_type", type=frame.type)

    async def _handle_join(self, frame: WsFrame) -> None:
        try:
            conversation_id = _uuid_field(frame.data, "conversation_id")
            async with self._uow_factory() as uow:
                await conversation_service.get_conversation(conversation_id, self._principal, uow)
        except AppError as exc:
            await self._reject(frame, exc)
            return
        hub.join(self.account_id, conversation_id)
        if frame.id is not None:
            await hub.send(self._ws, ack_frame(frame.id, True))

    async def _handle_leave(self, frame: WsFrame) -> None:
        try:
            conversation_id = _uuid_field(frame.data, "conversation_id")
        except ValidationError as exc:
            await self._reject(frame, exc)
            return
        hub.leave(self.account_id, conversation_id)
        if frame.id is not None:
            await hub.send(self._ws, ack_frame(frame.id, True))

    async def _handle_send(self, frame: WsFrame) -> None:
        try:
            conversation_id = _uuid_field(frame.data, "conversation_id")
            client_msg_id = _uuid_field(frame.data, "client_msg_id")
            body = frame.data.get("body")
            if not isinstance(body, str):
                raise ValidationError("body must be a string")
            async with self._uow_factory() as uow:
                msg, created, conversation = await message_service.send_message(
                    conversation_id, self._principal, client_msg_id, body, uow,
                )
        except AppError as exc:
            await self._reject(frame, exc)
            return

        message = MessageResponse.model_validate(msg, from_attributes=True).model_dump(mode="json")
        await hub.send(self._ws, ack_frame(frame.id, True, message=message))
        if not created:
            return

        recipients = list(conversation.participants)
        # The snapshot was read before this send touched the thread.
        if conversation.last_message_at is None:
            created_payload = ConversationResponse.model_validate(
                conversation, from_attributes=True,
            ).model_copy(update={"last_message_at": msg.sent_at})
            await self._send_targeted(
                CONVERSATION_CREATED, recipients, created_payload.model_dump(mode="json"),
            )
        await self._send_targeted(MESSAGE_NEW, recipients, message)

    async def _handle_sync(self, frame: WsFrame) -> None:
        try:
            conversation_id = _uuid_field(frame.data, "conversation_id")
            since = _since_field(frame.data)
            async with self._uow_factory() as uow:
                messages = await message_service.sync_messages(
                    conversation_id, self._principal, since, settings.SYNC_MAX_MESSAGES, uow,
                )
        except AppError as exc:
            await self._reject(frame, exc)
            return
        items = [
            MessageResponse.model_validate(m, from_attributes=True).model_dump(mode="json")
            for m in messages
        ]
        await hub.send(self._ws, ack_frame(frame.id, True, messages=items))

    async def _handle_mark_read(self, frame: WsFrame) -> None:
        try:
            request = _parse(MarkReadRequest, frame.data)
            async with self._uow_factory() as uow:
                changed, read_at, conversation = await message_service.mark_read(
                    request.conversation_id, self._principal, request.message_ids, uow,
                )
        except AppError as exc:
            await self._reject(frame, exc)
            return

        result = MarkReadResponse(message_ids=changed, read_at=read_at if changed else None)
        if frame.id is not None:
            await hub.send(self._ws, ack_frame(frame.id, True, **result.model_dump(mode="json")))
        if not changed:
            return

        receipt = {
            "conversation_id": str(conversation.id),
            "read_by": self.account_id,
            **result.model_dump(mode="json"),
        }
        await self._send_targeted(
            MESSAGE_READ, [conversation.counterpart_of(self.account_id)], receipt,
        )

    async def _handle_typing(self, frame: WsFrame) -> None:
        try:
            conversation_id = _uuid_field(frame.data, "conversation_id")
            # Joining checked access, so typing needs no database round trip.
            if self.account_id not in hub.joined(conversation_id):
                raise ForbiddenError("Join the conversation before sending typing events")
        except AppError as exc:
            await self._reject(frame, exc)
            return
        data = {"conversation_id": str(conversation_id), "user_id": self.account_id}
        await _relay_typing(frame.type, data)
        await self._publish(frame.type, data)

    async def _send_targeted(
        self, event_type: str, account_ids: list[int], payload: dict[str, Any],
    ) -> None:
        await hub.send_to_accounts(account_ids, WsFrame(type=event_type, data=payload))
        await self._publish(event_type, {"account_ids": account_ids, "payload": payload})

    async def _send_online_users(self) -> None:
        user_ids = await self._presence.online()
        await hub.send(self._ws, WsFrame(type=ONLINE_USERS, data={"user_ids": user_ids}))

    async def _presence_changed(self, *, is_online: bool) -> None:
        data: dict[str, Any] = {"user_id": self.account_id, "is_online": is_online}
        if not is_online:
            data["last_seen"] = datetime.now(timezone.utc).isoformat()
        logger.info("Account %s is %s", self.account_id, "online" if is_online else "offline")
        await hub.broadcast(WsFrame(type=USER_PRESENCE, data=data), exclude=self.account_id)
        await self._publish(USER_PRESENCE, data)

    async def _publish(self, event_type: str, data: dict[str, Any]) -> None:
        if self._publisher is None:
            return
        try:
            await self._publisher.publish(event_type, data)
        except Exception:
            logger.exception("Publishing %s failed", event_type)

    async def _reject(self, frame: WsFrame, exc: AppError) -> None:
        if frame.id is not None:
            await hub.send(
                self._ws,
                ack_frame(frame.id, False, reason_code=exc.code, detail=exc.detail),
            )
        else:
            await self._error(exc.code, detail=exc.detail)

    async def _error(self, code: str, **data: Any) -> None:
        await hub.send(self._ws, WsFrame(type=CHAT_ERROR, data={"code": code, **data}))


async def _relay_typing(event_type: str, data: dict[str, Any]) -> None:
    """Pass a typing event to the other accounts joined to the conversation here."""
    try:
        conversation_id = UUID(str(data["conversation_id"]))
        user_id = int(data["user_id"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Dropping malformed %s event: %r", event_type, data)
        return
    others = hub.joined(conversation_id) - {user_id}
    if others:
        await hub.send_to_accounts(list(others), WsFrame(type=event_type, data=data))


def _parse(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except SchemaError as exc:
        raise ValidationError(f"Invalid payload: {exc.error_count()} error(s)") from exc


def _uuid_field(data: Any, name: str) -> UUID:
    try:
        return UUID(str(data[name]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be a UUID") from exc


def _since_field(data: Any) -> datetime:
    try:
        since = datetime.fromisoformat(str(data["since"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError("since must be an ISO timestamp") from exc
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since
