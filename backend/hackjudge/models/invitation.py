from datetime import datetime
from uuid import uuid4

from sqlmodel import Field, SQLModel

from ..enums import UserRole
from ..timeutils import utcnow
from .columns import UTCDateTime, enum_column


class Invitation(SQLModel, table=True):
    __tablename__ = "invitations"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(index=True)
    role: UserRole = Field(sa_column=enum_column(UserRole, nullable=False))
    token: str = Field(index=True, unique=True)
    invited_by: str = Field(foreign_key="profiles.id")
    accepted_by: str | None = Field(default=None, foreign_key="profiles.id")
    accepted_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    expires_at: datetime = Field(sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
