from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import (
    auth_rate_limit,
    get_auth_service_transactional,
    get_current_principal,
    get_current_user,
)
from core.config import get_settings
from core.database import get_db
from models.user import User
from repositories.user_repo import UserRepository
from schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    LogoutRequest,
    MeResponse,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenResponse,
    VerifyEmailRequest,
)
from schemas.common import MessageResponse
from schemas.organization import OrganizationResponse
from schemas.user import UserResponse
from services.auth_service import FORGOT_PASSWORD_MESSAGE, AuthService
from services.authz_service import Principal
from services.token_service import TokenPair

router = APIRouter()
settings = get_settings()


def _token_response(tokens: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        expires_in=tokens.expires_in,
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
async def register(
    data: RegisterRequest,
    service: AuthService = Depends(get_auth_service_transactional),
):
    """
    Create an organization, its system roles and a SuperAdmin user.

    Returns a token pair so the new user is signed in immediately.
    """
    organization, user, tokens = await service.register(
        organization_name=data.organization_name,
        domain=data.domain,
        name=data.name,
        email=data.email,
        password=data.password,
    )
    return RegisterResponse(
        organization=OrganizationResponse.model_validate(organization),
        user=UserResponse.model_validate(user),
        tokens=_token_response(tokens),
    )


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
async def login(
    data: LoginRequest,
    service: AuthService = Depends(get_auth_service_transactional),
):
    """
    Exchange credentials for an access/refresh token pair.

    Rate limit: failed attempts count toward the auth limit per IP.
    """
    user, tokens = await service.login(data.domain, data.email, data.password)
    return AuthResponse(user=UserResponse.model_validate(user), tokens=_token_response(tokens))


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    data: RefreshRequest,
    service: AuthService = Depends(get_auth_service_transactional),
):
    """Rotate a refresh token. The presented token cannot be used again."""
    return _token_response(await service.refresh(data.refresh_token))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    data: LogoutRequest,
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service_transactional),
):
    await service.logout(user, data.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/password/forgot",
    response_model=ForgotPasswordResponse,
    dependencies=[Depends(auth_rate_limit)],
)
async def forgot_password(
    data: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service_transactional),
):
    """Always answers with the same message so account existence is not revealed"""
    token = await service.forgot_password(data.domain, data.email)
    return ForgotPasswordResponse(
        message=FORGOT_PASSWORD_MESSAGE,
        reset_token=None if settings.is_production else token,
    )


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    dependencies=[Depends(auth_rate_limit)],
)
async def reset_password(
    data: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service_transactional),
):
    await service.reset_password(data.token, data.new_password)
    return MessageResponse(message="Password has been reset")


@router.post("/password/change", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service_transactional),
):
    """Change the caller's password; every refresh token of the caller is revoked"""
    await service.change_password(user.id, data.current_password, data.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/verify-email", response_model=AuthResponse)
async def verify_email(
    data: VerifyEmailRequest,
    service: AuthService = Depends(get_auth_service_transactional),
):
    """Activate an invited account with its verification token"""
    user, tokens = await service.verify_email_and_activate(data.token, data.password)
    return AuthResponse(user=UserResponse.model_validate(user), tokens=_token_response(tokens))


@router.get("/me", response_model=MeResponse)
async def me(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    roles = await UserRepository(db).get_roles(principal.user)
    return MeResponse(
        user=UserResponse.model_validate(principal.user),
        roles=[role.name for role in roles],
        permissions=sorted(permission.value for permission in principal.permissions),
    )
