from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import get_current_user
from ..errors import ApiError, ErrorCode
from ..models import Invitation, Profile
from ..schemas.invitation import InvitationAccept
from ..schemas.profile import ProfilePublic
from ..timeutils import utcnow

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.post("/accept", response_model=ProfilePublic)
async def accept_invitation(
    payload: InvitationAccept,
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ProfilePublic:
    statement = select(Invitation).where(Invitation.token == payload.token)
    invitation = (await session.execute(statement)).scalar_one_or_none()
    if not invitation:
        raise ApiError(ErrorCode.NOT_FOUND, "Invitation not found.")
    if invitation.accepted_at is not None:
        raise ApiError(ErrorCode.CONFLICT, "Invitation has already been used.")

    now = utcnow()
    if invitation.expires_at <= now:
        raise ApiError(ErrorCode.BAD_REQUEST, "Invitation has expired.")
    if invitation.email.lower() != current_user.email.lower():
        raise ApiError(ErrorCode.FORBIDDEN, "This invitation was issued to a different email address.")

    invitation.accepted_at = now
    invitation.accepted_by = current_user.id
    current_user.role = invitation.role
    current_user.updated_at = now
    session.add(invitation)
    session.add(current_user)
    await session.commit()
    await session.refresh(current_user)
    return ProfilePublic.model_validate(current_user)
