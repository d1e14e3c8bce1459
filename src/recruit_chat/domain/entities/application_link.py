from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class ApplicationLink:
    """A candidate's application to one of a recruiter's jobs."""

    id: UUID
    recruiter_id: int
    candidate_id: int
    job_title: str
    applied_at: datetime
