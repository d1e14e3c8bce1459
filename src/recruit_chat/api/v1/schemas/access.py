from __future__ import annotations

from pydantic import BaseModel, Field

from recruit_chat.domain.value_objects.enums import AccessReason


class AccessCheckResponse(BaseModel):
    can_message: bool
    reason: AccessReason

    model_config = {"from_attributes": True}


class UnlockRequest(BaseModel):
    target_id: int = Field(gt=0)


class UnlockResponse(BaseModel):
    unlocked: bool
    already_unlocked: bool = False
    cost: int
    remaining_balance: int

    model_config = {"from_attributes": True}
