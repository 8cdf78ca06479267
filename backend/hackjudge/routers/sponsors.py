import logging
from typing import Sequence

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete as sa_delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import get_current_user, require_roles
from ..enums import SponsorMemberRole, UserRole
from ..errors import ApiError, ErrorCode
from ..models import Profile, SponsorMember, SponsorOrg
from ..schemas.sponsor import SponsorMemberAdd, SponsorMemberPublic, SponsorOrgCreate, SponsorOrgPublic

router = APIRouter(prefix="/sponsors", tags=["sponsors"])
logger = logging.getLogger(__name__)

get_sponsor_user = require_roles(UserRole.SPONSOR, UserRole.ADMIN)
MANAGING_ROLES = (SponsorMemberRole.OWNER, SponsorMemberRole.MANAGER)


async def _get_org_or_404(org_id: str, session: AsyncSession) -> SponsorOrg:
    org = await session.get(SponsorOrg, org_id)
    if not org:
        raise ApiError(ErrorCode.NOT_FOUND, "Sponsor organization not found.")
    return org


async def _get_membership(org_id: str, profile_id: str, session: AsyncSession) -> SponsorMember | None:
    statement = (
        select(SponsorMember)
        .where(SponsorMember.org_id == org_id)
        .where(SponsorMember.profile_id == profile_id)
    )
    return (await session.execute(statement)).scalar_one_or_none()


async def _ensure_can_manage(org: SponsorOrg, user: Profile, session: AsyncSession) -> None:
    if user.is_admin:
        return
    membership = await _get_membership(org.id, user.id, session)
    if membership is None or membership.role not in MANAGING_ROLES:
        raise ApiError(ErrorCode.FORBIDDEN, "Only organization owners and managers can manage members.")


async def _list_members(org_id: str, session: AsyncSession) -> list[SponsorMemberPublic]:
    statement = (
        select(SponsorMember, Profile.display_name)
        .join(Profile, Profile.id == SponsorMember.profile_id)
        .where(SponsorMember.org_id == org_id)
        .order_by(SponsorMember.joined_at.asc())
    )
    rows = (await session.execute(statement)).all()
    return [
        SponsorMemberPublic(
            profile_id=member.profile_id,
            role=member.role,
            display_name=display_name,
            joined_at=member.joined_at,
        )
        for member, display_name in rows
    ]


async def _org_detail(org: SponsorOrg, session: AsyncSession) -> SponsorOrgPublic:
    detail = SponsorOrgPublic.model_validate(org)
    detail.members = await _list_members(org.id, session)
    return detail


@router.post("/orgs", response_model=SponsorOrgPublic, status_code=status.HTTP_201_CREATED)
async def create_org(
    payload: SponsorOrgCreate,
    current_user: Profile = Depends(get_sponsor_user),
    session: AsyncSession = Depends(get_session),
) -> SponsorOrgPublic:
    name = payload.org_name.strip()
    existing = (await session.execute(select(SponsorOrg).where(SponsorOrg.org_name == name))).scalar_one_or_none()
    if existing:
        raise ApiError(ErrorCode.CONFLICT, "An organization with this name already exists.")

    org = SponsorOrg(
        org_name=name,
        website=payload.website,
        logo_url=payload.logo_url,
        owner_profile_id=current_user.id,
    )
    session.add(org)
    await session.flush()
    session.add(SponsorMember(org_id=org.id, profile_id=current_user.id, role=SponsorMemberRole.OWNER))
    await session.commit()
    await session.refresh(org)
    logger.info("Sponsor organization %s created by %s", org.id, current_user.id)
    return await _org_detail(org, session)


@router.get("/orgs", response_model=list[SponsorOrgPublic])
async def list_orgs(
    _: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Sequence[SponsorOrgPublic]:
    orgs = (await session.execute(select(SponsorOrg).order_by(SponsorOrg.org_name.asc()))).scalars().all()
    return [SponsorOrgPublic.model_validate(org) for org in orgs]


@router.get("/orgs/{org_id}", response_model=SponsorOrgPublic)
async def get_org(
    org_id: str,
    _: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> SponsorOrgPublic:
    return await _org_detail(await _get_org_or_404(org_id, session), session)


@router.post("/orgs/{org_id}/members", response_model=SponsorOrgPublic, status_code=status.HTTP_201_CREATED)
async def add_member(
    org_id: str,
    payload: SponsorMemberAdd,
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> SponsorOrgPublic:
    org = await _get_org_or_404(org_id, session)
    await _ensure_can_manage(org, current_user, session)
    if payload.role == SponsorMemberRole.OWNER:
        raise ApiError(ErrorCode.BAD_REQUEST, "An organization has exactly one owner.")
    if not await session.get(Profile, payload.profile_id):
        raise ApiError(ErrorCode.NOT_FOUND, "Profile not found.")
    if await _get_membership(org.id, payload.profile_id, session):
        raise ApiError(ErrorCode.CONFLICT, "Profile is already a member of this organization.")

    session.add(SponsorMember(org_id=org.id, profile_id=payload.profile_id, role=payload.role))
    await session.commit()
    return await _org_detail(org, session)


@router.delete("/orgs/{org_id}/members/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    org_id: str,
    profile_id: str,
    current_user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    org = await _get_org_or_404(org_id, session)
    await _ensure_can_manage(org, current_user, session)
    if profile_id == org.owner_profile_id:
        raise ApiError(ErrorCode.BAD_REQUEST, "The organization owner cannot be removed.")
    membership = await _get_membership(org.id, profile_id, session)
    if membership is None:
        raise ApiError(ErrorCode.NOT_FOUND, "Member not found.")

    await session.execute(sa_delete(SponsorMember).where(SponsorMember.id == membership.id))
    await session.commit()
