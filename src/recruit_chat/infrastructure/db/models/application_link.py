from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Index, String, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from recruit_chat.infrastructure.db.base import Base


class ApplicationLinkModel(Base):
    """Read-only projection of job applications owned by the job board."""

    __tablename__ = "application_links"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    recruiter_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    candidate_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    job_title: Mapped[str] = mapped_column(String(255), nullable=False)
    applied_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    __table_args__ = (
        Index("ix_application_links_pair", "recruiter_id", "candidate_id", "applied_at"),
    )
