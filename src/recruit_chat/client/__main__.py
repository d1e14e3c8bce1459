"""Interactive console client.

    RECRUIT_CHAT_ACCESS_TOKEN=... python -m recruit_chat.client

Commands: ``/open <account_id>``, ``/unlock <account_id>``, ``/retry``,
``/reconnect``, ``/quit``. Any other line is sent to the open conversation.
"""
from __future__ import annotations

import asyncio
import logging
import sys

import jwt

from recruit_chat.application.exceptions import (
    AppError,
    InsufficientBalanceError,
    SendFailedError,
)
from recruit_chat.client.config import ClientSettings
from recruit_chat.client.connection import ConnectionErrorInfo, ConnectionStatus
from recruit_chat.client.session import MessagingSession
from recruit_chat.client.thread import LocalMessage
from recruit_chat.domain.value_objects.enums import DeliveryState, TransportState
from recruit_chat.infrastructure.http.chat_api import HttpChatApi
from recruit_chat.infrastructure.ws.client_transport import WebSocketTransport

logger = logging.getLogger(__name__)


def _account_id(token: str) -> int:
    # The server verifies the token; the client only needs to know who it is.
    claims = jwt.decode(token, options={"verify_signature": False})
    return int(claims["sub"])


def _show_status(status: ConnectionStatus) -> None:
    if status.state == TransportState.RECONNECTING and status.reconnect_attempt:
        print(
            f"[reconnecting (attempt {status.reconnect_attempt}, "
            f"retry in {status.next_retry_delay:.1f}s)]"
        )
    else:
        print(f"[{status.state}]")


def _show_error(info: ConnectionErrorInfo) -> None:
    print(f"[connection error: {info.error}]")


def _show_messages(messages: list[LocalMessage]) -> None:
    if not messages:
        return
    last = messages[-1]
    marker = {
        DeliveryState.PENDING: "...",
        DeliveryState.SENT: "",
        DeliveryState.FAILED: " (failed, /retry)",
    }[last.state]
    print(f"<{last.sender_id}> {last.body}{marker}")


async def _handle(session: MessagingSession, line: str) -> bool:
    command, _, arg = line.partition(" ")
    if command == "/quit":
        return False
    if command == "/open":
        conversation = await session.open_conversation_with(int(arg))
        print(f"[opened {conversation.id}]")
        for message in session.thread.messages:
            print(f"<{message.sender_id}> {message.body}")
    elif command == "/unlock":
        result = await session.access.unlock(int(arg))
        print(f"[unlocked, balance {result.remaining_balance}]")
    elif command == "/retry":
        failed = [m for m in session.thread.messages if m.state == DeliveryState.FAILED]
        if not failed:
            print("[nothing to retry]")
        else:
            await session.thread.retry_message(failed[-1].client_msg_id)
    elif command == "/reconnect":
        await session.connection.reconnect()
    else:
        await session.thread.send_message(line)
    return True


async def run(settings: ClientSettings) -> None:
    token = settings.ACCESS_TOKEN
    if not token:
        raise SystemExit("RECRUIT_CHAT_ACCESS_TOKEN is not set")

    api = HttpChatApi(settings.API_BASE_URL, lambda: token, timeout=settings.HTTP_TIMEOUT)
    transport = WebSocketTransport(settings.WS_URL, open_timeout=settings.CONNECT_TIMEOUT)
    session = MessagingSession(_account_id(token), transport, api, lambda: token, settings=settings)
    session.connection.on_state_change.subscribe(_show_status)
    session.connection.on_connection_error.subscribe(_show_error)
    session.presence.on_change.subscribe(lambda online: print(f"[online: {sorted(online)}]"))
    session.thread.on_messages_change.subscribe(_show_messages)

    try:
        async with session:
            print(f"[balance {session.access.balance}]")
            while True:
                line = await asyncio.to_thread(sys.stdin.readline)
                if not line:
                    break
                line = line.strip()
                if not line:
                    continue
                try:
                    if not await _handle(session, line):
                        break
                except InsufficientBalanceError:
                    print("[not enough credits, top up first]")
                except SendFailedError as exc:
                    print(f"[not delivered: {exc.detail}]")
                except AppError as exc:
                    print(f"[{exc.code}: {exc.detail}]")
                except ValueError:
                    print("[expected a numeric account id]")
    finally:
        await api.aclose()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run(ClientSettings()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
