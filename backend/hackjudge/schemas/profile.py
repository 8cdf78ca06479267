from datetime import datetime

from pydantic import BaseModel, Field

from ..enums import UserRole


class ProfilePublic(BaseModel):
    id: str
    email: str
    display_name: str
    role: UserRole
    bio_md: str | None = None
    github_url: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=80)
    bio_md: str | None = Field(default=None, max_length=5000)
    github_url: str | None = Field(default=None, max_length=500)


class RoleUpdate(BaseModel):
    role: UserRole
