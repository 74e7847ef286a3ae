"""
Candidate rows mirrored from the upstream ATS.

Rows are written only by the reconciliation step of a sync run and are
replaced wholesale on the next run for the same ``source_platform``.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Enum, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, db

if TYPE_CHECKING:  # pragma: no cover
    from recruitops.workable.normalize import CanonicalCandidate


class InterviewStage(str, enum.Enum):
    """Pipeline stage shown to recruiters, derived from the upstream state."""

    PENDING = "pending"
    SOURCED = "sourced"
    APPLIED = "applied"
    PHONE_SCREEN = "phone_screen"
    INTERVIEW = "interview"
    OFFER = "offer"
    HIRED = "hired"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class Candidate(BaseModel):
    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(primary_key=True)
    workable_candidate_id: Mapped[str] = mapped_column(db.String(100), nullable=False, index=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    current_position: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    company: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    skills: Mapped[list | None] = mapped_column(db.JSON, nullable=True)
    experience_years: Mapped[int | None] = mapped_column(db.Integer, nullable=True)
    education: Mapped[list | None] = mapped_column(db.JSON, nullable=True)
    linkedin_profile_url: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    profile_picture_url: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    resume_url: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    upstream_state: Mapped[str | None] = mapped_column(db.String(50), nullable=True)
    interview_stage: Mapped[InterviewStage] = mapped_column(
        Enum(InterviewStage, name="interview_stage_enum"),
        nullable=False,
        default=InterviewStage.PENDING,
    )
    profile_completeness_score: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    source_platform: Mapped[str] = mapped_column(db.String(50), nullable=False, index=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    sync_run_id: Mapped[int | None] = mapped_column(
        db.Integer,
        nullable=True,
        comment="Sync log row that wrote this candidate; informational only.",
    )

    __table_args__ = (Index("ix_candidates_source_external", "source_platform", "workable_candidate_id"),)

    def __repr__(self) -> str:
        return f"<Candidate {self.workable_candidate_id} source={self.source_platform}>"

    @classmethod
    def from_canonical(cls, candidate: "CanonicalCandidate", *, sync_run_id: int | None = None) -> "Candidate":
        """Build a row, clipping text to the declared column lengths."""
        values = dict(
            workable_candidate_id=candidate.external_id,
            name=candidate.name,
            email=candidate.email,
            phone=candidate.phone,
            location=candidate.location,
            current_position=candidate.current_position,
            company=candidate.company,
            skills=list(candidate.skills),
            experience_years=candidate.experience_years,
            education=[entry.as_dict() for entry in candidate.education],
            linkedin_profile_url=candidate.linkedin_profile_url,
            profile_picture_url=candidate.profile_picture_url,
            resume_url=candidate.resume_url,
            upstream_state=candidate.upstream_state,
            interview_stage=candidate.interview_stage,
            profile_completeness_score=candidate.completeness_score,
            source_platform=candidate.source_platform,
            last_synced_at=candidate.last_synced_at,
            sync_run_id=sync_run_id,
        )
        for column in cls.__table__.columns:
            length = getattr(column.type, "length", None)
            value = values.get(column.key)
            if length and type(value) is str and len(value) > length:
                values[column.key] = value[:length]
        return cls(**values)
