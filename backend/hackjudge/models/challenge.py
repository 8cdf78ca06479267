from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel

from ..timeutils import utcnow
from .columns import UTCDateTime


class Challenge(SQLModel, table=True):
    __tablename__ = "challenges"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    title: str
    brief_md: str = Field(default="")
    repo_template_url: str | None = Field(default=None)
    tags: list[str] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    is_active: bool = Field(default=True, index=True)
    deadline_utc: datetime = Field(sa_type=UTCDateTime)
    sponsor_org_id: str | None = Field(default=None, foreign_key="sponsor_orgs.id")
    # dimension -> {"max_points": int, "description": str}
    rubric: dict | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    created_by: str = Field(foreign_key="profiles.id")
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
