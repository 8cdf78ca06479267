from functools import lru_cache

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session_factory, get_session
from .enums import UserRole
from .errors import ApiError, ErrorCode
from .models import Profile
from .security import decode_token
from .services.analysis_service import AnalysisService
from .services.submission_store import SubmissionStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> Profile:
    if not token:
        raise ApiError(ErrorCode.UNAUTHORIZED, "Authentication required.")

    try:
        payload = decode_token(token)
    except ValueError:
        raise ApiError(ErrorCode.UNAUTHORIZED, "Invalid token.") from None

    user = await session.get(Profile, payload["sub"])
    if not user:
        raise ApiError(ErrorCode.UNAUTHORIZED, "User not found.")

    return user


def require_roles(*roles: UserRole):
    allowed = set(roles)

    def dependency(current_user: Profile = Depends(get_current_user)) -> Profile:
        if current_user.role not in allowed:
            names = ", ".join(sorted(role.value for role in allowed))
            raise ApiError(ErrorCode.FORBIDDEN, f"Requires one of the roles: {names}.")
        return current_user

    return dependency


get_admin_user = require_roles(UserRole.ADMIN)
get_reviewer_user = require_roles(UserRole.JUDGE, UserRole.ADMIN)


@lru_cache
def _build_analysis_service() -> AnalysisService:
    return AnalysisService.from_settings(get_settings(), SubmissionStore(async_session_factory))


def get_analysis_service() -> AnalysisService:
    return _build_analysis_service()
