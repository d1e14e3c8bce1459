from __future__ import annotations

from dataclasses import dataclass

from recruit_chat.domain.value_objects.enums import AccountRole


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    account_id: int
    role: AccountRole

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN
