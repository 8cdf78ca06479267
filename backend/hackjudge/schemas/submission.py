from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..enums import ReviewDecision, SubmissionStatus


class SubmissionCreate(BaseModel):
    challenge_id: str
    repo_url: str | None = Field(default=None, max_length=500)
    deck_url: str | None = Field(default=None, max_length=500)
    demo_url: str | None = Field(default=None, max_length=500)
    writeup_md: str | None = Field(default=None, max_length=50_000)

    @field_validator("repo_url", "deck_url", "demo_url")
    @classmethod
    def http_url(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value

    @field_validator("writeup_md")
    @classmethod
    def strip_writeup(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def require_content(self) -> "SubmissionCreate":
        if not self.repo_url and not self.writeup_md:
            raise ValueError("A repository URL or a writeup is required")
        return self


class SubmissionPublic(BaseModel):
    """What the owning builder sees: no AI rationale, sub-scores or details."""

    id: str
    user_id: str
    challenge_id: str
    repo_url: str | None = None
    deck_url: str | None = None
    demo_url: str | None = None
    writeup_md: str | None = None
    status: SubmissionStatus
    ai_analyzed_at: datetime | None = None
    judge_score: float | None = None
    judge_feedback: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SubmissionReviewerView(SubmissionPublic):
    score_llm: float | None = None
    score_auto: float | None = None
    auto_checks_json: dict | None = None
    rubric_scores_json: dict | None = None
    rationale_md: str | None = None
    ai_detailed_analysis: Any = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None


class ReviewRequest(BaseModel):
    status: ReviewDecision
    score: float | None = Field(default=None, ge=0, le=100)
    feedback: str | None = Field(default=None, max_length=10_000)
