from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from core.enums import UserStatus
from schemas.common import PaginationMeta
from schemas.validators import NAME_MIN_LENGTH, normalize_email, validate_non_blank


class RoleSummary(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class UserInvite(BaseModel):
    """Schema for inviting a user into the caller's organization"""

    name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=100)
    email: EmailStr = Field(..., description="Unique within the organization")
    role_names: list[str] = Field(..., min_length=1, description="Roles to assign, in order")

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_non_blank(v, NAME_MIN_LENGTH)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)


class UserUpdate(BaseModel):
    """Schema for updating user information; omitted fields are left unchanged"""

    name: str | None = Field(None, min_length=NAME_MIN_LENGTH, max_length=100)
    email: EmailStr | None = None
    status: UserStatus | None = None
    role_names: list[str] | None = Field(None, min_length=1)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str | None) -> str | None:
        return validate_non_blank(v, NAME_MIN_LENGTH) if v is not None else v


class UserResponse(BaseModel):
    """Schema for user responses (excludes password)"""

    id: str
    organization_id: str
    name: str
    email: str
    status: UserStatus
    last_login_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserWithRolesResponse(UserResponse):
    roles: list[RoleSummary] = Field(default_factory=list)


class UserDetailResponse(UserWithRolesResponse):
    stats: dict[str, int] = Field(default_factory=dict)


class InvitationResponse(BaseModel):
    user: UserWithRolesResponse
    verification_token: str | None = Field(
        None, description="Only returned outside production, where no email is sent"
    )


class UserListResponse(BaseModel):
    items: list[UserWithRolesResponse]
    pagination: PaginationMeta
