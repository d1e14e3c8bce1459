"""WebSocket frame envelope and event names shared by client and server."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel

# client -> server
GET_ONLINE_USERS = "get:online:users"
CONVERSATION_JOIN = "conversation:join"
CONVERSATION_LEAVE = "conversation:leave"
MESSAGE_SEND = "message:send"
MESSAGES_SYNC = "messages:sync"
CHAT_MARK_READ = "chat:markRead"
PING = "ping"

# both directions; the server relays them to the other joined participant
TYPING_START = "chat:typing:start"
TYPING_STOP = "chat:typing:stop"

# server -> client
ONLINE_USERS = "online:users"
USER_PRESENCE = "user:presence"
MESSAGE_NEW = "message:new"
MESSAGE_READ = "chat:messageRead"
CONVERSATION_CREATED = "conversation:created"
ACK = "ack"
CHAT_ERROR = "chat:error"
PONG = "pong"

AUTH_FAILED_CLOSE_CODE = 4001


class WsFrame(BaseModel):
    """One event on the wire.

    ``id`` is set on requests that expect an ``ack`` frame carrying the same id.
    """

    type: str
    data: Any = None
    id: str | None = None

    def is_ack(self) -> bool:
        return self.type == ACK and self.id is not None


def ack_frame(request_id: str | None, success: bool, **data: Any) -> WsFrame:
    return WsFrame(type=ACK, id=request_id, data={"success": success, **data})
