from typing import Sequence

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import get_current_user, require_roles
from ..enums import UserRole
from ..errors import ApiError, ErrorCode
from ..models import Challenge, Profile, SponsorOrg
from ..schemas.challenge import ChallengeCreate, ChallengePublic, ChallengeUpdate
from ..timeutils import utcnow

router = APIRouter(prefix="/challenges", tags=["challenges"])

get_challenge_author = require_roles(UserRole.ADMIN, UserRole.SPONSOR)


async def _get_challenge_or_404(challenge_id: str, session: AsyncSession) -> Challenge:
    challenge = await session.get(Challenge, challenge_id)
    if not challenge:
        raise ApiError(ErrorCode.NOT_FOUND, "Challenge not found.")
    return challenge


@router.get("", response_model=list[ChallengePublic])
async def list_challenges(
    active_only: bool = False,
    session: AsyncSession = Depends(get_session),
) -> Sequence[ChallengePublic]:
    statement = select(Challenge).order_by(Challenge.deadline_utc.asc())
    if active_only:
        statement = statement.where(Challenge.is_active.is_(True))
    challenges = (await session.execute(statement)).scalars().all()
    return [ChallengePublic.model_validate(challenge) for challenge in challenges]


@router.get("/{challenge_id}", response_model=ChallengePublic)
async def get_challenge(challenge_id: str, session: AsyncSession = Depends(get_session)) -> ChallengePublic:
    return ChallengePublic.model_validate(await _get_challenge_or_404(challenge_id, session))


@router.post("", response_model=ChallengePublic, status_code=status.HTTP_201_CREATED)
async def create_challenge(
    payload: ChallengeCreate,
    current_user: Profile = Depends(get_challenge_author),
    session: AsyncSession = Depends(get_session),
) -> ChallengePublic:
    if payload.deadline_utc <= utcnow():
        raise ApiError(ErrorCode.BAD_REQUEST, "Deadline must be in the future.")
    if payload.sponsor_org_id and not await session.get(SponsorOrg, payload.sponsor_org_id):
        raise ApiError(ErrorCode.NOT_FOUND, "Sponsor organization not found.")

    challenge = Challenge(**payload.model_dump(), created_by=current_user.id)
    session.add(challenge)
    await session.commit()
    await session.refresh(challenge)
    return ChallengePublic.model_validate(challenge)


@router.patch("/{challenge_id}", response_model=ChallengePublic)
async def update_challenge(
    challenge_id: str,
    payload: ChallengeUpdate,
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ChallengePublic:
    challenge = await _get_challenge_or_404(challenge_id, session)
    if not current_user.is_admin and challenge.created_by != current_user.id:
        raise ApiError(ErrorCode.FORBIDDEN, "Only the challenge creator or an admin can edit it.")

    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(challenge, key, value)
    challenge.updated_at = utcnow()
    session.add(challenge)
    await session.commit()
    await session.refresh(challenge)
    return ChallengePublic.model_validate(challenge)
