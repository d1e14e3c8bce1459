from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from recruit_chat.api.deps import CurrentPrincipal, UoWDep
from recruit_chat.api.v1.schemas.access import AccessCheckResponse
from recruit_chat.api.v1.schemas.conversation import (
    ConversationResponse,
    CreateConversationRequest,
)
from recruit_chat.api.v1.schemas.message import MessagePage, MessageResponse
from recruit_chat.services import access_service, conversation_service, message_service

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.get("/access-check/{target_id}", response_model=AccessCheckResponse)
async def check_access(
    target_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> AccessCheckResponse:
    decision = await access_service.check_access(principal, target_id, uow)
    return AccessCheckResponse.model_validate(decision, from_attributes=True)


@router.post("/conversations", response_model=ConversationResponse)
async def create_or_get_conversation(
    body: CreateConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv, _created = await conversation_service.create_or_get_conversation(
        principal, body.counterpart_id, uow,
    )
    return ConversationResponse.model_validate(conv, from_attributes=True)


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> list[ConversationResponse]:
    convs = await conversation_service.list_conversations(principal, page, limit, uow)
    return [ConversationResponse.model_validate(c, from_attributes=True) for c in convs]


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.get_conversation(conversation_id, principal, uow)
    return ConversationResponse.model_validate(conv, from_attributes=True)


@router.get("/conversations/{conversation_id}/messages", response_model=MessagePage)
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
) -> MessagePage:
    messages, total = await message_service.list_messages(
        conversation_id, principal, page, limit, uow,
    )
    return MessagePage(
        items=[MessageResponse.model_validate(m, from_attributes=True) for m in messages],
        page=page,
        limit=limit,
        total=total,
    )
