from typing import Annotated

from fastapi import APIRouter, Depends

from api.deps import (
    get_organization_service,
    get_organization_service_transactional,
    require_any,
)
from core.permissions import Permission
from schemas.organization import (
    OrganizationResponse,
    OrganizationStatsResponse,
    OrganizationUpdate,
)
from services.authz_service import Principal
from services.organization_service import OrganizationService

router = APIRouter()

CanViewOrganization = Annotated[Principal, Depends(require_any(Permission.ORG_VIEW))]


@router.get("", response_model=OrganizationResponse)
async def get_organization(
    principal: CanViewOrganization,
    service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """The caller's own organization"""
    return await service.get_organization(principal.organization_id)


@router.patch("", response_model=OrganizationResponse)
async def update_organization(
    data: OrganizationUpdate,
    principal: Annotated[Principal, Depends(require_any(Permission.ORG_MANAGE))],
    service: Annotated[OrganizationService, Depends(get_organization_service_transactional)],
):
    """Update name, domain or settings; settings are deep-merged"""
    return await service.update_organization(
        principal.organization_id,
        principal.user_id,
        name=data.name,
        domain=data.domain,
        settings=data.settings,
    )


@router.get("/stats", response_model=OrganizationStatsResponse)
async def get_organization_stats(
    principal: CanViewOrganization,
    service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    return await service.get_organization_stats(principal.organization_id)
