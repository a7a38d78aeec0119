from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from api.deps import get_audit_service, require_any
from core.enums import AuditAction, AuditEntityType
from core.permissions import Permission
from schemas.audit_log import AuditLogListResponse, AuditLogResponse
from schemas.common import PaginationMeta
from services.audit_service import AuditService
from services.authz_service import Principal

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    principal: Annotated[Principal, Depends(require_any(Permission.AUDIT_VIEW))],
    service: Annotated[AuditService, Depends(get_audit_service)],
    entity_type: AuditEntityType | None = None,
    entity_id: str | None = None,
    user_id: str | None = None,
    action: AuditAction | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
):
    """Audit trail of the caller's organization, newest first"""
    result = await service.list_entries(
        principal.organization_id,
        entity_type=entity_type.value if entity_type else None,
        entity_id=entity_id,
        user_id=user_id,
        action=action.value if action else None,
        created_from=created_from,
        created_to=created_to,
        page=page,
        page_size=page_size,
    )
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in result.items],
        pagination=PaginationMeta(**result.pagination()),
    )
