from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    API_BASE_URL: str = "http://localhost:8000"
    WS_URL: str = "ws://localhost:8000/ws/chat"
    ACCESS_TOKEN: str = ""

    CONNECT_TIMEOUT: float = 10.0
    SEND_TIMEOUT: float = 10.0
    HTTP_TIMEOUT: float = 15.0
    HEARTBEAT_SECONDS: float | None = 25.0

    RECONNECT_BASE_DELAY: float = 1.0
    RECONNECT_MAX_DELAY: float = 30.0
    RECONNECT_JITTER: float = 0.0

    HISTORY_PAGE_SIZE: int = 50
    UNLOCK_COST: int = 50

    model_config = ConfigDict(
        env_prefix="RECRUIT_CHAT_",
        env_file=".env",
        extra="ignore",
    )
