from __future__ import annotations

from recruit_chat.domain.entities.application_link import ApplicationLink
from recruit_chat.infrastructure.db.models.application_link import ApplicationLinkModel


def model_to_entity(model: ApplicationLinkModel) -> ApplicationLink:
    return ApplicationLink(
        id=model.id,
        recruiter_id=model.recruiter_id,
        candidate_id=model.candidate_id,
        job_title=model.job_title,
        applied_at=model.applied_at,
    )
