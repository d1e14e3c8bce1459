from __future__ import annotations

from dataclasses import dataclass

from recruit_chat.domain.value_objects.enums import AccessReason


@dataclass(frozen=True, slots=True)
class AccessDecision:
    can_message: bool
    reason: AccessReason


@dataclass(frozen=True, slots=True)
class UnlockResult:
    unlocked: bool
    already_unlocked: bool
    cost: int
    remaining_balance: int
