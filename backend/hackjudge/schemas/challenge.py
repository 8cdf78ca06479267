from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ..timeutils import to_utc


class RubricDimensionSpec(BaseModel):
    max_points: float = Field(gt=0, le=100)
    description: str = ""


class ChallengeBase(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    brief_md: str = ""
    repo_template_url: str | None = None
    tags: list[str] | None = None
    deadline_utc: datetime
    sponsor_org_id: str | None = None
    rubric: dict[str, RubricDimensionSpec] | None = None

    @field_validator("deadline_utc")
    @classmethod
    def normalize_deadline(cls, value: datetime) -> datetime:
        return to_utc(value)


class ChallengeCreate(ChallengeBase):
    is_active: bool = True


class ChallengeUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    brief_md: str | None = None
    repo_template_url: str | None = None
    tags: list[str] | None = None
    is_active: bool | None = None
    deadline_utc: datetime | None = None
    rubric: dict[str, RubricDimensionSpec] | None = None

    @field_validator("deadline_utc")
    @classmethod
    def normalize_deadline(cls, value: datetime | None) -> datetime | None:
        return to_utc(value) if value is not None else None


class ChallengePublic(BaseModel):
    id: str
    title: str
    brief_md: str
    repo_template_url: str | None = None
    tags: list[str] | None = None
    is_active: bool
    deadline_utc: datetime
    sponsor_org_id: str | None = None
    rubric: dict | None = None
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True
