"""Entrypoint: python -m recruit_chat (API and WebSocket server)."""
from __future__ import annotations

import uvicorn

from recruit_chat.config import settings


def main() -> None:
    uvicorn.run(
        "recruit_chat.app:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL,
    )


if __name__ == "__main__":
    main()
