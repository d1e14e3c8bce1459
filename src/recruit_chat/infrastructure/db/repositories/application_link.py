from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_chat.domain.entities.application_link import ApplicationLink
from recruit_chat.infrastructure.db.mappers import application_link as mapper
from recruit_chat.infrastructure.db.models.application_link import ApplicationLinkModel


class ApplicationLinkReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def latest_between(self, recruiter_id: int, candidate_id: int) -> ApplicationLink | None:
        stmt = (
            select(ApplicationLinkModel)
            .where(
                ApplicationLinkModel.recruiter_id == recruiter_id,
                ApplicationLinkModel.candidate_id == candidate_id,
            )
            .order_by(ApplicationLinkModel.applied_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None
