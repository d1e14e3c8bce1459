from __future__ import annotations

from typing import Protocol

from recruit_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal: ...


class TokenProvider(Protocol):
    """Supplies the latest bearer token of the logged-in account."""

    def __call__(self) -> str: ...
