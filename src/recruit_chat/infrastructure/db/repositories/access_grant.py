from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_chat.domain.entities.access_grant import AccessGrant
from recruit_chat.infrastructure.db.mappers import access_grant as mapper
from recruit_chat.infrastructure.db.models.access_grant import AccessGrantModel


class AccessGrantReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, payer_id: int, target_id: int) -> AccessGrant | None:
        stmt = select(AccessGrantModel).where(
            AccessGrantModel.payer_id == payer_id,
            AccessGrantModel.target_id == target_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None


class AccessGrantWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, grant: AccessGrant) -> bool:
        """Insert the grant. Returns False if the pair already had one."""
        stmt = (
            pg_insert(AccessGrantModel)
            .values(
                payer_id=grant.payer_id,
                target_id=grant.target_id,
                cost=grant.cost,
                granted_at=grant.granted_at,
            )
            .on_conflict_do_nothing(constraint="uq_access_grant_pair")
            .returning(AccessGrantModel.id)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None
