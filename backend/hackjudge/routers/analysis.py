import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import get_analysis_service, get_current_user, get_reviewer_user
from ..errors import ApiError, ErrorCode
from ..models import Profile, Submission
from ..schemas.analysis import (
    AnalysisPublic,
    AnalysisStatusResponse,
    AnalyzeOwnerResponse,
    AnalyzeRequest,
    AnalyzeReviewerResponse,
    BatchAnalyzeRequest,
    BatchAnalyzeResponse,
)
from ..services.analysis_service import AnalysisOutcomeKind, AnalysisService

router = APIRouter(prefix="/submissions/analyze", tags=["analysis"])
logger = logging.getLogger(__name__)

OWNER_MESSAGES = {
    AnalysisOutcomeKind.ANALYZED: "Submission analyzed successfully. Results are available to judges.",
    AnalysisOutcomeKind.ALREADY_ANALYZED: "Submission has already been analyzed. Results are available to judges.",
}


async def _get_submission_or_404(submission_id: str, session: AsyncSession) -> Submission:
    submission = await session.get(Submission, submission_id)
    if not submission:
        raise ApiError(ErrorCode.NOT_FOUND, "Submission not found.")
    return submission


@router.post("")
async def trigger_analysis(
    payload: AnalyzeRequest,
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    submission = await _get_submission_or_404(payload.submission_id, session)
    is_owner = submission.user_id == current_user.id
    if not is_owner and not current_user.is_reviewer:
        raise ApiError(ErrorCode.FORBIDDEN, "You can only analyze your own submissions.")
    if payload.force_reanalyze and not current_user.is_reviewer:
        raise ApiError(ErrorCode.FORBIDDEN, "Only judges and admins can force a re-analysis.")

    # the pipeline uses its own sessions; don't hold this one open meanwhile
    await session.close()

    logger.info(
        "Analysis of %s requested by %s (role=%s, force=%s)",
        submission.id,
        current_user.id,
        current_user.role.value,
        payload.force_reanalyze,
    )
    outcome = await service.analyze(submission.id, force=payload.force_reanalyze)

    if outcome.kind == AnalysisOutcomeKind.NOT_FOUND:
        raise ApiError(ErrorCode.NOT_FOUND, "Submission not found.")
    if outcome.kind == AnalysisOutcomeKind.IN_PROGRESS:
        raise ApiError(ErrorCode.CONFLICT, "Analysis is already in progress for this submission.")
    if outcome.kind == AnalysisOutcomeKind.NOT_CLAIMABLE:
        raise ApiError(
            ErrorCode.CONFLICT,
            "Submission has already been reviewed; only a judge can force a new analysis.",
        )
    if not outcome.succeeded or outcome.result is None:
        logger.error("Analysis of %s failed: %s", submission.id, outcome.error)
        raise ApiError(ErrorCode.INTERNAL_ERROR, "AI analysis failed.")

    if current_user.is_reviewer:
        response = AnalyzeReviewerResponse(
            success=True,
            submission_id=submission.id,
            analyzed=True,
            analysis=AnalysisPublic.model_validate(outcome.result),
        )
    else:
        response = AnalyzeOwnerResponse(
            success=True,
            submission_id=submission.id,
            analyzed=True,
            message=OWNER_MESSAGES[outcome.kind],
        )
    return response.model_dump(mode="json", by_alias=True)


@router.get("", response_model=AnalysisStatusResponse)
async def read_analysis_status(
    submission_id: str | None = Query(default=None, alias="submissionId"),
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> AnalysisStatusResponse:
    if not submission_id:
        raise ApiError(ErrorCode.BAD_REQUEST, "submissionId query parameter is required.")
    submission = await _get_submission_or_404(submission_id, session)
    return AnalysisStatusResponse(
        submission_id=submission.id,
        analyzed=submission.ai_analyzed_at is not None,
        analyzed_at=submission.ai_analyzed_at,
        score=submission.score_llm,
    )


@router.post("/batch", response_model=BatchAnalyzeResponse)
async def trigger_batch_analysis(
    payload: BatchAnalyzeRequest,
    current_user: Profile = Depends(get_reviewer_user),
    service: AnalysisService = Depends(get_analysis_service),
) -> BatchAnalyzeResponse:
    logger.info("Batch analysis of %s submissions requested by %s", len(payload.submission_ids), current_user.id)
    summary = await service.analyze_batch(payload.submission_ids)
    return BatchAnalyzeResponse.model_validate(summary)
