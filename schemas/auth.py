from pydantic import BaseModel, EmailStr, Field, field_validator

from schemas.organization import OrganizationResponse
from schemas.user import UserResponse
from schemas.validators import (
    NAME_MIN_LENGTH,
    normalize_email,
    validate_domain,
    validate_non_blank,
    validate_password,
)


class RegisterRequest(BaseModel):
    """Create an organization and its first (SuperAdmin) user"""

    organization_name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=100)
    domain: str = Field(..., description="Unique organization domain, used to sign in")
    name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=100)
    email: EmailStr
    password: str

    @field_validator("organization_name", "name")
    @classmethod
    def check_names(cls, v: str) -> str:
        return validate_non_blank(v, NAME_MIN_LENGTH)

    @field_validator("domain")
    @classmethod
    def check_domain(cls, v: str) -> str:
        return validate_domain(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password(v)


class LoginRequest(BaseModel):
    domain: str = Field(..., description="Organization domain for multi-tenant isolation")
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("domain")
    @classmethod
    def check_domain(cls, v: str) -> str:
        return validate_domain(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    domain: str
    email: EmailStr

    @field_validator("domain")
    @classmethod
    def check_domain(cls, v: str) -> str:
        return validate_domain(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password(v)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password(v)


class VerifyEmailRequest(BaseModel):
    """Activate an invited account and choose its password"""

    token: str = Field(..., min_length=1)
    password: str

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password(v)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class AuthResponse(BaseModel):
    user: UserResponse
    tokens: TokenResponse


class RegisterResponse(AuthResponse):
    organization: OrganizationResponse


class ForgotPasswordResponse(BaseModel):
    message: str
    reset_token: str | None = Field(None, description="Only returned outside production")


class MeResponse(BaseModel):
    user: UserResponse
    roles: list[str]
    permissions: list[str]
