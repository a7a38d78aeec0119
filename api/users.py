from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from api.deps import get_user_service, get_user_service_transactional, require_any
from core.config import get_settings
from core.enums import SortOrder
from core.permissions import Permission
from models.role import Role
from models.user import User
from schemas.common import PaginationMeta
from schemas.user import (
    InvitationResponse,
    RoleSummary,
    UserDetailResponse,
    UserInvite,
    UserListResponse,
    UserUpdate,
    UserWithRolesResponse,
)
from services.authz_service import Principal
from services.user_service import UserService

router = APIRouter()
settings = get_settings()


def _with_roles(user: User, roles: list[Role]) -> UserWithRolesResponse:
    response = UserWithRolesResponse.model_validate(user)
    response.roles = [RoleSummary.model_validate(role) for role in roles]
    return response


@router.post("", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def invite_user(
    data: UserInvite,
    principal: Annotated[Principal, Depends(require_any(Permission.USER_INVITE))],
    service: Annotated[UserService, Depends(get_user_service_transactional)],
):
    """
    Invite a user into the caller's organization.

    The user stays pending until they verify their email and choose a
    password. Outside production the verification token is returned so the
    flow can be completed without email delivery.
    """
    invitation = await service.invite_user(
        principal.organization_id,
        principal.user_id,
        name=data.name,
        email=data.email,
        role_names=data.role_names,
    )
    return InvitationResponse(
        user=_with_roles(invitation.user, invitation.roles),
        verification_token=None if settings.is_production else invitation.verification_token,
    )


@router.get("", response_model=UserListResponse)
async def list_users(
    principal: Annotated[Principal, Depends(require_any(Permission.USER_VIEW))],
    service: Annotated[UserService, Depends(get_user_service)],
    search: str | None = Query(None, max_length=100),
    status_filter: Annotated[list[str] | None, Query(alias="status")] = None,
    role: str | None = None,
    sort_by: str = Query("created_at", pattern="^(name|email|created_at|last_login_at)$"),
    sort_order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
):
    result, roles = await service.list_users(
        principal.organization_id,
        search=search,
        statuses=status_filter,
        role_name=role,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )
    return UserListResponse(
        items=[_with_roles(user, roles.get(user.id, [])) for user in result.items],
        pagination=PaginationMeta(**result.pagination()),
    )


@router.get("/{user_id}", response_model=UserDetailResponse)
async def get_user(
    user_id: str,
    principal: Annotated[Principal, Depends(require_any(Permission.USER_VIEW))],
    service: Annotated[UserService, Depends(get_user_service)],
):
    detail = await service.get_user(principal.organization_id, user_id)
    response = UserDetailResponse.model_validate(detail.user)
    response.roles = [RoleSummary.model_validate(role) for role in detail.roles]
    response.stats = detail.stats
    return response


@router.patch("/{user_id}", response_model=UserWithRolesResponse)
async def update_user(
    user_id: str,
    data: UserUpdate,
    principal: Annotated[Principal, Depends(require_any(Permission.USER_UPDATE))],
    service: Annotated[UserService, Depends(get_user_service_transactional)],
):
    updated = await service.update_user(
        principal.organization_id,
        principal.user_id,
        user_id,
        name=data.name,
        email=data.email,
        status=data.status,
        role_names=data.role_names,
    )
    return _with_roles(updated.user, updated.roles)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    principal: Annotated[Principal, Depends(require_any(Permission.USER_DELETE))],
    service: Annotated[UserService, Depends(get_user_service_transactional)],
):
    """Deactivate a user and revoke all their tokens"""
    await service.delete_user(principal.organization_id, principal.user_id, user_id)
