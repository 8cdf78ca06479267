from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    submission_id: str = Field(alias="submissionId", min_length=1)
    force_reanalyze: bool = Field(default=False, alias="forceReanalyze")

    class Config:
        populate_by_name = True


class BatchAnalyzeRequest(BaseModel):
    submission_ids: list[str] = Field(alias="submissionIds", min_length=1, max_length=200)

    class Config:
        populate_by_name = True


class AnalysisPublic(BaseModel):
    score_llm: float | None = None
    rubric_scores_json: dict | None = None
    rationale_md: str | None = None
    ai_detailed_analysis: Any = None
    ai_analyzed_at: datetime | None = None
    score_auto: float | None = None
    auto_checks_json: dict | None = None

    class Config:
        from_attributes = True


class AnalyzeOwnerResponse(BaseModel):
    success: bool
    submission_id: str = Field(alias="submissionId")
    analyzed: bool
    message: str

    class Config:
        populate_by_name = True


class AnalyzeReviewerResponse(BaseModel):
    success: bool
    submission_id: str = Field(alias="submissionId")
    analyzed: bool
    analysis: AnalysisPublic

    class Config:
        populate_by_name = True


class AnalysisStatusResponse(BaseModel):
    submission_id: str = Field(alias="submissionId")
    analyzed: bool
    analyzed_at: datetime | None = Field(default=None, alias="analyzedAt")
    score: float | None = None

    class Config:
        populate_by_name = True


class BatchItemPublic(BaseModel):
    id: str
    success: bool
    error: str | None = None

    class Config:
        from_attributes = True


class BatchAnalyzeResponse(BaseModel):
    successful: int
    failed: int
    results: list[BatchItemPublic]

    class Config:
        from_attributes = True
