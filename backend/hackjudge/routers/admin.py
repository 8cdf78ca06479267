import logging
from datetime import timedelta
from typing import Sequence

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..database import get_session
from ..dependencies import get_admin_user
from ..enums import UserRole
from ..errors import ApiError, ErrorCode
from ..models import Invitation, Profile
from ..schemas.invitation import InvitationCreate, InvitationPublic
from ..schemas.profile import ProfilePublic, RoleUpdate
from ..security import generate_invitation_token
from ..timeutils import utcnow

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(get_admin_user)],
)
settings = get_settings()
logger = logging.getLogger(__name__)


@router.get("/profiles", response_model=list[ProfilePublic])
async def list_profiles(
    role: UserRole | None = None,
    session: AsyncSession = Depends(get_session),
) -> Sequence[ProfilePublic]:
    statement = select(Profile).order_by(Profile.created_at.desc())
    if role:
        statement = statement.where(Profile.role == role)
    profiles = (await session.execute(statement)).scalars().all()
    return [ProfilePublic.model_validate(profile) for profile in profiles]


@router.patch("/profiles/{profile_id}/role", response_model=ProfilePublic)
async def update_profile_role(
    profile_id: str,
    payload: RoleUpdate,
    current_user: Profile = Depends(get_admin_user),
    session: AsyncSession = Depends(get_session),
) -> ProfilePublic:
    profile = await session.get(Profile, profile_id)
    if not profile:
        raise ApiError(ErrorCode.NOT_FOUND, "Profile not found.")
    if profile.id == current_user.id and payload.role != UserRole.ADMIN:
        raise ApiError(ErrorCode.BAD_REQUEST, "Admins cannot demote themselves.")

    profile.role = payload.role
    profile.updated_at = utcnow()
    session.add(profile)
    await session.commit()
    await session.refresh(profile)
    logger.info("Profile %s role set to %s by %s", profile.id, payload.role.value, current_user.id)
    return ProfilePublic.model_validate(profile)


@router.post("/invitations", response_model=InvitationPublic, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    payload: InvitationCreate,
    current_user: Profile = Depends(get_admin_user),
    session: AsyncSession = Depends(get_session),
) -> InvitationPublic:
    invitation = Invitation(
        email=payload.email.lower(),
        role=payload.role,
        token=generate_invitation_token(),
        invited_by=current_user.id,
        expires_at=utcnow() + timedelta(days=settings.invitation_expire_days),
    )
    session.add(invitation)
    await session.commit()
    await session.refresh(invitation)
    logger.info("Invitation for %s as %s created by %s", invitation.email, invitation.role.value, current_user.id)
    return InvitationPublic.model_validate(invitation)
