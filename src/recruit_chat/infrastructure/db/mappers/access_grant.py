from __future__ import annotations

from recruit_chat.domain.entities.access_grant import AccessGrant
from recruit_chat.infrastructure.db.models.access_grant import AccessGrantModel


def model_to_entity(model: AccessGrantModel) -> AccessGrant:
    return AccessGrant(
        payer_id=model.payer_id,
        target_id=model.target_id,
        cost=model.cost,
        granted_at=model.granted_at,
    )
