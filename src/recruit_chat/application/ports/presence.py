from __future__ import annotations

from typing import Protocol


class PresenceRegistry(Protocol):
    """Counts live sockets per account across server instances."""

    async def add(self, account_id: int) -> bool:
        """Register one socket. Returns True when the account just came online."""
        ...

    async def remove(self, account_id: int) -> bool:
        """Drop one socket. Returns True when the account just went offline."""
        ...

    async def online(self) -> list[int]: ...
