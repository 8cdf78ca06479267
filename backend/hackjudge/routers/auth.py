from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..config import get_settings
from ..database import get_session
from ..errors import ApiError, ErrorCode
from ..models import Profile
from ..schemas.auth import LoginRequest, RegisterRequest, Token
from ..schemas.profile import ProfilePublic
from ..security import create_access_token, get_password_hash, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


def _issue_token(profile: Profile) -> Token:
    expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    token_value = create_access_token(profile.id, expires_delta)
    return Token(
        access_token=token_value,
        expires_at=datetime.now(timezone.utc) + expires_delta,
        user=ProfilePublic.model_validate(profile),
    )


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, session: AsyncSession = Depends(get_session)) -> Token:
    email = payload.email.lower()
    existing = (await session.execute(select(Profile).where(Profile.email == email))).scalar_one_or_none()
    if existing:
        raise ApiError(ErrorCode.CONFLICT, "Email is already registered.")

    profile = Profile(
        email=email,
        display_name=payload.display_name.strip(),
        hashed_password=get_password_hash(payload.password),
    )
    session.add(profile)
    await session.commit()
    await session.refresh(profile)
    return _issue_token(profile)


@router.post("/login", response_model=Token)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_session)) -> Token:
    statement = select(Profile).where(Profile.email == payload.email.lower())
    profile = (await session.execute(statement)).scalar_one_or_none()
    if not profile or not verify_password(payload.password, profile.hashed_password):
        raise ApiError(ErrorCode.UNAUTHORIZED, "Incorrect email or password.")
    return _issue_token(profile)
