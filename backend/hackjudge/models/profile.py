from datetime import datetime
from uuid import uuid4

from sqlmodel import Field, SQLModel

from ..enums import UserRole
from ..timeutils import utcnow
from .columns import UTCDateTime, enum_column


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(index=True, unique=True)
    display_name: str
    hashed_password: str
    role: UserRole = Field(
        default=UserRole.BUILDER,
        sa_column=enum_column(UserRole, nullable=False, index=True),
    )
    bio_md: str | None = Field(default=None)
    github_url: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_reviewer(self) -> bool:
        return self.role in (UserRole.JUDGE, UserRole.ADMIN)
