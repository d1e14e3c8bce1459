from __future__ import annotations

from typing import Protocol

from recruit_chat.domain.entities.application_link import ApplicationLink


class ApplicationLinkReader(Protocol):
    async def latest_between(self, recruiter_id: int, candidate_id: int) -> ApplicationLink | None:
        """Most recent application of ``candidate_id`` to a job of ``recruiter_id``."""
        ...
