from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from api.deps import get_lead_service, get_lead_service_transactional, require_any
from core.enums import LeadSource, LeadStatus, SortOrder
from core.permissions import Permission
from schemas.common import PaginationMeta
from schemas.lead import LeadAssign, LeadCreate, LeadListResponse, LeadResponse, LeadUpdate
from services.authz_service import Principal
from services.lead_service import LeadService

router = APIRouter()

CanViewLeads = Annotated[
    Principal, Depends(require_any(Permission.LEAD_VIEW_ALL, Permission.LEAD_VIEW_OWN))
]


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    data: LeadCreate,
    principal: Annotated[Principal, Depends(require_any(Permission.LEAD_CREATE))],
    service: Annotated[LeadService, Depends(get_lead_service_transactional)],
):
    """Create a lead; the owner defaults to the caller"""
    return await service.create_lead(principal, data.model_dump(exclude_unset=True))


@router.get("", response_model=LeadListResponse)
async def list_leads(
    principal: CanViewLeads,
    service: Annotated[LeadService, Depends(get_lead_service)],
    status_filter: Annotated[LeadStatus | None, Query(alias="status")] = None,
    source: LeadSource | None = None,
    owner_user_id: str | None = None,
    search: str | None = Query(None, max_length=100),
    sort_by: str = Query("created_at", pattern="^(title|status|created_at|updated_at)$"),
    sort_order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """Callers holding only 'lead.view.own' see their own leads regardless of filters"""
    result = await service.list_leads(
        principal,
        status=status_filter,
        source=source,
        owner_user_id=owner_user_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )
    return LeadListResponse(
        items=[LeadResponse.model_validate(lead) for lead in result.items],
        pagination=PaginationMeta(**result.pagination()),
    )


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: str,
    principal: CanViewLeads,
    service: Annotated[LeadService, Depends(get_lead_service)],
):
    return await service.get_lead(principal, lead_id)


@router.patch("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: str,
    data: LeadUpdate,
    principal: Annotated[
        Principal, Depends(require_any(Permission.LEAD_EDIT_ALL, Permission.LEAD_EDIT_OWN))
    ],
    service: Annotated[LeadService, Depends(get_lead_service_transactional)],
):
    return await service.update_lead(principal, lead_id, data.model_dump(exclude_unset=True))


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    lead_id: str,
    principal: Annotated[
        Principal, Depends(require_any(Permission.LEAD_DELETE_ALL, Permission.LEAD_DELETE_OWN))
    ],
    service: Annotated[LeadService, Depends(get_lead_service_transactional)],
):
    await service.delete_lead(principal, lead_id)


@router.post("/{lead_id}/assign", response_model=LeadResponse)
async def assign_lead(
    lead_id: str,
    data: LeadAssign,
    principal: Annotated[Principal, Depends(require_any(Permission.LEAD_ASSIGN))],
    service: Annotated[LeadService, Depends(get_lead_service_transactional)],
):
    """Hand a lead to another active user of the organization"""
    return await service.assign_lead(principal, lead_id, data.owner_user_id)
