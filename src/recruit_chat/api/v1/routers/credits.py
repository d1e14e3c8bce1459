from __future__ import annotations

from fastapi import APIRouter

from recruit_chat.api.deps import CurrentPrincipal, UoWDep
from recruit_chat.api.v1.schemas.access import UnlockRequest, UnlockResponse
from recruit_chat.api.v1.schemas.common import ErrorResponse
from recruit_chat.api.v1.schemas.credits import BalanceResponse
from recruit_chat.config import settings
from recruit_chat.services import credit_service

router = APIRouter(prefix="/api/v1/credits", tags=["credits"])


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> BalanceResponse:
    balance = await credit_service.get_balance(principal, uow)
    return BalanceResponse(account_id=principal.account_id, balance=balance)


@router.post(
    "/unlock",
    response_model=UnlockResponse,
    responses={402: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def unlock_profile(
    body: UnlockRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UnlockResponse:
    result = await credit_service.unlock_profile(
        principal, body.target_id, settings.UNLOCK_COST, uow,
    )
    return UnlockResponse.model_validate(result, from_attributes=True)
