from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import get_current_user
from ..models import Profile
from ..schemas.profile import ProfilePublic, ProfileUpdate
from ..timeutils import utcnow

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfilePublic)
async def read_current_profile(current_user: Profile = Depends(get_current_user)) -> Profile:
    return current_user


@router.patch("/me", response_model=ProfilePublic)
async def update_current_profile(
    payload: ProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Profile:
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(current_user, key, value)
    current_user.updated_at = utcnow()
    session.add(current_user)
    await session.commit()
    await session.refresh(current_user)
    return current_user
