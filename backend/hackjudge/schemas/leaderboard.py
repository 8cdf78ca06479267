from datetime import datetime

from pydantic import BaseModel

from ..enums import SubmissionStatus


class LeaderboardEntry(BaseModel):
    rank: int
    submission_id: str
    user_id: str
    display_name: str
    score_llm: float | None = None
    judge_score: float | None = None
    score_display: float
    status: SubmissionStatus
    created_at: datetime


class LeaderboardResponse(BaseModel):
    challenge_id: str
    entries: list[LeaderboardEntry]
