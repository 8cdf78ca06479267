from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..enums import SubmissionStatus
from ..errors import ApiError, ErrorCode
from ..models import Challenge, Profile, Submission
from ..schemas.leaderboard import LeaderboardEntry, LeaderboardResponse

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])

RANKED_STATUSES = (SubmissionStatus.ANALYZED, SubmissionStatus.APPROVED)


def display_score(submission: Submission) -> float | None:
    if submission.judge_score is not None:
        return submission.judge_score
    return submission.score_llm


@router.get("", response_model=LeaderboardResponse)
async def read_leaderboard(
    challenge_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    if not await session.get(Challenge, challenge_id):
        raise ApiError(ErrorCode.NOT_FOUND, "Challenge not found.")

    statement = (
        select(Submission, Profile.display_name)
        .join(Profile, Profile.id == Submission.user_id)
        .where(Submission.challenge_id == challenge_id)
        .where(Submission.status.in_(RANKED_STATUSES))
    )
    rows = (await session.execute(statement)).all()

    scored = [(submission, name, display_score(submission)) for submission, name in rows]
    scored = [row for row in scored if row[2] is not None]
    scored.sort(key=lambda row: (-row[2], row[0].created_at))

    entries = [
        LeaderboardEntry(
            rank=rank,
            submission_id=submission.id,
            user_id=submission.user_id,
            display_name=name,
            score_llm=submission.score_llm,
            judge_score=submission.judge_score,
            score_display=score,
            status=submission.status,
            created_at=submission.created_at,
        )
        for rank, (submission, name, score) in enumerate(scored[:limit], start=1)
    ]
    return LeaderboardResponse(challenge_id=challenge_id, entries=entries)
