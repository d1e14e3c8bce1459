from __future__ import annotations

from typing import Protocol

from recruit_chat.domain.entities.access_grant import AccessGrant


class AccessGrantReader(Protocol):
    async def get(self, payer_id: int, target_id: int) -> AccessGrant | None: ...


class AccessGrantWriter(Protocol):
    async def create(self, grant: AccessGrant) -> bool:
        """Insert the grant. Returns False if the pair already had one."""
        ...
