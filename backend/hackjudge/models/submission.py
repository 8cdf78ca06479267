from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel

from ..enums import SubmissionStatus
from ..timeutils import utcnow
from .columns import UTCDateTime, enum_column


class Submission(SQLModel, table=True):
    __tablename__ = "submissions"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="profiles.id", index=True)
    challenge_id: str = Field(foreign_key="challenges.id", index=True)
    repo_url: str | None = Field(default=None)
    deck_url: str | None = Field(default=None)
    demo_url: str | None = Field(default=None)
    writeup_md: str | None = Field(default=None)
    status: SubmissionStatus = Field(
        default=SubmissionStatus.PENDING,
        sa_column=enum_column(SubmissionStatus, nullable=False, index=True),
    )

    score_llm: float | None = Field(default=None)
    rubric_scores_json: dict | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    rationale_md: str | None = Field(default=None)
    ai_detailed_analysis: Any = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    score_auto: float | None = Field(default=None)
    auto_checks_json: dict | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    ai_analyzed_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    analysis_started_at: datetime | None = Field(default=None, sa_type=UTCDateTime)

    judge_score: float | None = Field(default=None)
    judge_feedback: str | None = Field(default=None)
    reviewed_by: str | None = Field(default=None, foreign_key="profiles.id")
    reviewed_at: datetime | None = Field(default=None, sa_type=UTCDateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
