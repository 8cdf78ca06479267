from datetime import datetime

from pydantic import BaseModel, Field

from ..enums import SponsorMemberRole


class SponsorOrgCreate(BaseModel):
    org_name: str = Field(min_length=1, max_length=120)
    website: str | None = None
    logo_url: str | None = None


class SponsorMemberPublic(BaseModel):
    profile_id: str
    role: SponsorMemberRole
    display_name: str
    joined_at: datetime


class SponsorOrgPublic(BaseModel):
    id: str
    org_name: str
    website: str | None = None
    logo_url: str | None = None
    verified: bool
    owner_profile_id: str
    created_at: datetime
    members: list[SponsorMemberPublic] | None = None

    class Config:
        from_attributes = True


class SponsorMemberAdd(BaseModel):
    profile_id: str
    role: SponsorMemberRole = SponsorMemberRole.MEMBER
