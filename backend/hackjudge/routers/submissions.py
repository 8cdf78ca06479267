import logging
from typing import Sequence

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy import select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..database import get_session
from ..dependencies import get_analysis_service, get_current_user, get_reviewer_user
from ..enums import SubmissionStatus
from ..errors import ApiError, ErrorCode
from ..models import Challenge, Profile, Submission
from ..schemas.submission import ReviewRequest, SubmissionCreate, SubmissionPublic, SubmissionReviewerView
from ..services.analysis_service import AnalysisService, dispatch_analysis
from ..timeutils import utcnow

router = APIRouter(prefix="/submissions", tags=["submissions"])
settings = get_settings()
logger = logging.getLogger(__name__)


def _submission_view(submission: Submission, viewer: Profile) -> SubmissionPublic:
    if viewer.is_reviewer:
        return SubmissionReviewerView.model_validate(submission)
    return SubmissionPublic.model_validate(submission)


@router.post("", response_model=SubmissionPublic, status_code=status.HTTP_201_CREATED)
async def create_submission(
    payload: SubmissionCreate,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: AnalysisService = Depends(get_analysis_service),
) -> SubmissionPublic:
    challenge = await session.get(Challenge, payload.challenge_id)
    if not challenge:
        raise ApiError(ErrorCode.NOT_FOUND, "Challenge not found.")
    if not challenge.is_active:
        raise ApiError(ErrorCode.BAD_REQUEST, "Challenge is not active.")
    if challenge.deadline_utc <= utcnow():
        raise ApiError(ErrorCode.BAD_REQUEST, "The challenge deadline has passed.")

    submission = Submission(**payload.model_dump(), user_id=current_user.id)
    session.add(submission)
    await session.commit()
    await session.refresh(submission)
    logger.info("Submission %s created by %s for challenge %s", submission.id, current_user.id, challenge.id)

    if settings.auto_analyze_submissions:
        background_tasks.add_task(dispatch_analysis, service, submission.id)
    return SubmissionPublic.model_validate(submission)


@router.get("/mine", response_model=list[SubmissionPublic])
async def list_my_submissions(
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Sequence[SubmissionPublic]:
    statement = (
        select(Submission)
        .where(Submission.user_id == current_user.id)
        .order_by(Submission.created_at.desc())
    )
    submissions = (await session.execute(statement)).scalars().all()
    return [SubmissionPublic.model_validate(submission) for submission in submissions]


@router.get("", response_model=list[SubmissionReviewerView])
async def list_submissions(
    challenge_id: str | None = None,
    submission_status: SubmissionStatus | None = None,
    _: Profile = Depends(get_reviewer_user),
    session: AsyncSession = Depends(get_session),
) -> Sequence[SubmissionReviewerView]:
    statement = select(Submission).order_by(Submission.created_at.desc())
    if challenge_id:
        statement = statement.where(Submission.challenge_id == challenge_id)
    if submission_status:
        statement = statement.where(Submission.status == submission_status)
    submissions = (await session.execute(statement)).scalars().all()
    return [SubmissionReviewerView.model_validate(submission) for submission in submissions]


@router.get("/{submission_id}", response_model=None)
async def get_submission(
    submission_id: str,
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> SubmissionPublic:
    submission = await session.get(Submission, submission_id)
    if not submission:
        raise ApiError(ErrorCode.NOT_FOUND, "Submission not found.")
    if submission.user_id != current_user.id and not current_user.is_reviewer:
        raise ApiError(ErrorCode.FORBIDDEN, "You cannot view this submission.")
    return _submission_view(submission, current_user)


@router.post("/{submission_id}/review", response_model=SubmissionReviewerView)
async def review_submission(
    submission_id: str,
    payload: ReviewRequest,
    current_user: Profile = Depends(get_reviewer_user),
    session: AsyncSession = Depends(get_session),
) -> SubmissionReviewerView:
    submission = await session.get(Submission, submission_id)
    if not submission:
        raise ApiError(ErrorCode.NOT_FOUND, "Submission not found.")

    # an analysis claim may land after the read above, so the status guard
    # lives in the UPDATE itself
    now = utcnow()
    statement = (
        sa_update(Submission)
        .where(Submission.id == submission_id)
        .where(Submission.status != SubmissionStatus.ANALYZING)
        .values(
            status=SubmissionStatus(payload.status.value),
            judge_score=payload.score,
            judge_feedback=payload.feedback,
            reviewed_by=current_user.id,
            reviewed_at=now,
            updated_at=now,
        )
    )
    result = await session.execute(statement)
    await session.commit()
    if result.rowcount != 1:
        raise ApiError(ErrorCode.CONFLICT, "Submission is being analyzed; review it once analysis finishes.")

    submission = await session.get(Submission, submission_id, populate_existing=True)
    logger.info("Submission %s reviewed by %s: %s", submission.id, current_user.id, payload.status.value)
    return SubmissionReviewerView.model_validate(submission)
