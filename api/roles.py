from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from api.deps import (
    get_role_service,
    get_role_service_transactional,
    require_any,
)
from core.permissions import Permission
from schemas.common import PaginationMeta
from schemas.role import (
    PermissionCatalogResponse,
    RoleCreate,
    RoleDetailResponse,
    RoleListResponse,
    RoleMember,
    RoleResponse,
    RoleUpdate,
)
from services.authz_service import Principal
from services.role_service import RoleService

router = APIRouter()

CanManageRoles = Annotated[Principal, Depends(require_any(Permission.ROLE_MANAGE))]
CanViewRoles = Annotated[Principal, Depends(require_any(Permission.ROLE_MANAGE, Permission.PERMISSION_VIEW))]


@router.get("/permissions", response_model=PermissionCatalogResponse)
async def list_permissions(
    _: Annotated[Principal, Depends(require_any(Permission.PERMISSION_VIEW))],
):
    """Every permission the system knows, flat and grouped by category"""
    return RoleService.get_all_permissions()


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreate,
    principal: CanManageRoles,
    service: Annotated[RoleService, Depends(get_role_service_transactional)],
):
    """Create a custom role (requires 'role.manage')"""
    role = await service.create_role(
        principal.organization_id,
        principal.user_id,
        name=data.name,
        permissions=data.permissions,
        description=data.description,
    )
    response = RoleResponse.model_validate(role)
    response.user_count = 0
    return response


@router.get("", response_model=RoleListResponse)
async def list_roles(
    principal: CanViewRoles,
    service: Annotated[RoleService, Depends(get_role_service)],
    search: str | None = Query(None, max_length=100),
    include_system: bool = True,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    result, counts = await service.list_roles(
        principal.organization_id,
        search=search,
        include_system=include_system,
        page=page,
        page_size=page_size,
    )
    items = []
    for role in result.items:
        item = RoleResponse.model_validate(role)
        item.user_count = counts.get(role.id, 0)
        items.append(item)
    return RoleListResponse(items=items, pagination=PaginationMeta(**result.pagination()))


@router.get("/{role_id}", response_model=RoleDetailResponse)
async def get_role(
    role_id: str,
    principal: CanViewRoles,
    service: Annotated[RoleService, Depends(get_role_service)],
):
    detail = await service.get_role(principal.organization_id, role_id)
    response = RoleDetailResponse.model_validate(detail.role)
    response.user_count = detail.user_count
    response.users = [RoleMember.model_validate(user) for user in detail.users]
    return response


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    data: RoleUpdate,
    principal: CanManageRoles,
    service: Annotated[RoleService, Depends(get_role_service_transactional)],
):
    """Partially update a custom role; system roles are read-only"""
    role = await service.update_role(
        principal.organization_id,
        principal.user_id,
        role_id,
        **data.model_dump(exclude_unset=True),
    )
    return RoleResponse.model_validate(role)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    principal: CanManageRoles,
    service: Annotated[RoleService, Depends(get_role_service_transactional)],
):
    """Delete a custom role that is not assigned to anyone"""
    await service.delete_role(principal.organization_id, principal.user_id, role_id)
