from datetime import datetime

from pydantic import BaseModel, EmailStr, field_validator

from ..enums import UserRole


class InvitationCreate(BaseModel):
    email: EmailStr
    role: UserRole

    @field_validator("role")
    @classmethod
    def privileged_role(cls, value: UserRole) -> UserRole:
        if value == UserRole.BUILDER:
            raise ValueError("Builders sign up directly and need no invitation")
        return value


class InvitationPublic(BaseModel):
    id: str
    email: str
    role: UserRole
    token: str
    expires_at: datetime
    accepted_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvitationAccept(BaseModel):
    token: str
