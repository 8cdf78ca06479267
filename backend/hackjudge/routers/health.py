import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..analysis.scoring import ScoringError
from ..database import get_session
from ..dependencies import get_analysis_service
from ..errors import ApiError, ErrorCode
from ..models import Challenge, Profile
from ..services.analysis_service import AnalysisService
from ..timeutils import utcnow

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/db")
async def database_health(session: AsyncSession = Depends(get_session)) -> dict:
    try:
        profiles = (await session.execute(select(func.count()).select_from(Profile))).scalar_one()
        challenges = (await session.execute(select(func.count()).select_from(Challenge))).scalar_one()
    except SQLAlchemyError as exc:
        logger.exception("Database health check failed")
        raise ApiError(ErrorCode.INTERNAL_ERROR, f"Database health check failed: {exc.__class__.__name__}") from exc
    return {
        "status": "healthy",
        "now": utcnow(),
        "tables": {"profiles": profiles, "challenges": challenges},
    }


@router.get("/llm")
async def llm_health(service: AnalysisService = Depends(get_analysis_service)) -> dict:
    scoring_client = service.scoring_client
    try:
        await scoring_client.check_connection()
    except ScoringError as exc:
        logger.warning("LLM health check failed: %s", exc)
        raise ApiError(ErrorCode.INTERNAL_ERROR, f"LLM health check failed: {exc.detail}") from exc
    return {
        "status": "healthy",
        "model": scoring_client.model,
        "api_key_configured": True,
        "connection_test": "passed",
        "timestamp": utcnow(),
    }
