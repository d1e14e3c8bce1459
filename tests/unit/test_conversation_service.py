from __future__ import annotations

import uuid

import pytest

from recruit_chat.application.dto.principal import Principal
from recruit_chat.application.exceptions import AccessDeniedError, ForbiddenError, NotFoundError
from recruit_chat.domain.value_objects.enums import AccessReason, AccountRole, ContextType
from recruit_chat.services import conversation_service
from tests.conftest import CANDIDATE_ID, RECRUITER_ID, make_conversation


@pytest.mark.asyncio
async def test_create_requires_access(recruiter_principal, uow):
    with pytest.raises(AccessDeniedError) as info:
        await conversation_service.create_or_get_conversation(recruiter_principal, CANDIDATE_ID, uow)

    assert info.value.reason == AccessReason.NO_ACCESS
    assert uow.conversations._store == {}


@pytest.mark.asyncio
async def test_create_with_application_context(recruiter_principal, uow):
    link = uow.applications.add(RECRUITER_ID, CANDIDATE_ID, job_title="Data Engineer")

    conv, created = await conversation_service.create_or_get_conversation(
        recruiter_principal, CANDIDATE_ID, uow,
    )

    assert created is True
    assert conv.participants == (CANDIDATE_ID, RECRUITER_ID)
    assert conv.context.type == ContextType.APPLICATION
    assert conv.context.context_id == link.id
    assert conv.context.title == "Data Engineer"
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_create_with_unlock_context(recruiter_principal, uow):
    uow.grants.add(RECRUITER_ID, CANDIDATE_ID)

    conv, _ = await conversation_service.create_or_get_conversation(
        recruiter_principal, CANDIDATE_ID, uow,
    )

    assert conv.context.type == ContextType.PROFILE_UNLOCK


@pytest.mark.asyncio
async def test_one_conversation_per_pair(recruiter_principal, candidate_principal, uow):
    uow.grants.add(RECRUITER_ID, CANDIDATE_ID)

    first, created1 = await conversation_service.create_or_get_conversation(
        recruiter_principal, CANDIDATE_ID, uow,
    )
    second, created2 = await conversation_service.create_or_get_conversation(
        candidate_principal, RECRUITER_ID, uow,
    )

    assert created1 is True
    assert created2 is False
    assert first.id == second.id
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_existing_conversation_opens_without_access(recruiter_principal, uow):
    conv = uow.add_conversation(make_conversation())

    found, created = await conversation_service.create_or_get_conversation(
        recruiter_principal, CANDIDATE_ID, uow,
    )

    assert created is False
    assert found.id == conv.id


@pytest.mark.asyncio
async def test_create_with_unknown_counterpart(recruiter_principal, uow):
    with pytest.raises(NotFoundError):
        await conversation_service.create_or_get_conversation(recruiter_principal, 999, uow)


@pytest.mark.asyncio
async def test_get_conversation_checks_participation(recruiter_principal, admin_principal, uow):
    conv = uow.add_conversation(make_conversation())
    outsider = Principal(account_id=99, role=AccountRole.RECRUITER)

    assert (await conversation_service.get_conversation(conv.id, recruiter_principal, uow)).id == conv.id
    assert (await conversation_service.get_conversation(conv.id, admin_principal, uow)).id == conv.id
    with pytest.raises(ForbiddenError):
        await conversation_service.get_conversation(conv.id, outsider, uow)
    with pytest.raises(NotFoundError):
        await conversation_service.get_conversation(uuid.uuid4(), recruiter_principal, uow)


@pytest.mark.asyncio
async def test_list_conversations_for_participant(recruiter_principal, candidate_principal, uow):
    mine = uow.add_conversation(make_conversation(RECRUITER_ID, CANDIDATE_ID))
    uow.add_conversation(make_conversation(RECRUITER_ID, 8))

    convs = await conversation_service.list_conversations(candidate_principal, 1, 20, uow)

    assert [c.id for c in convs] == [mine.id]
