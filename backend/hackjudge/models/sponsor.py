from datetime import datetime
from uuid import uuid4

from sqlmodel import Field, SQLModel

from ..enums import SponsorMemberRole
from ..timeutils import utcnow
from .columns import UTCDateTime, enum_column


class SponsorOrg(SQLModel, table=True):
    __tablename__ = "sponsor_orgs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    org_name: str = Field(index=True, unique=True)
    website: str | None = Field(default=None)
    logo_url: str | None = Field(default=None)
    verified: bool = Field(default=False)
    owner_profile_id: str = Field(foreign_key="profiles.id")
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class SponsorMember(SQLModel, table=True):
    __tablename__ = "sponsor_members"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    org_id: str = Field(foreign_key="sponsor_orgs.id", index=True)
    profile_id: str = Field(foreign_key="profiles.id", index=True)
    role: SponsorMemberRole = Field(
        default=SponsorMemberRole.MEMBER,
        sa_column=enum_column(SponsorMemberRole, nullable=False),
    )
    joined_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
