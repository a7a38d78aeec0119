"""
Lead operations with ownership scoping.

Route gates only check that the caller holds *some* variant of a
permission. Whether the caller is limited to their own leads is decided
here: a caller holding only the ``.own`` variant is constrained to leads
they own, a caller holding the ``.all`` variant is not.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import AuditAction, AuditEntityType, LeadSource, LeadStatus, SortOrder
from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from core.permissions import Permission
from models.lead import Lead
from models.mixins import utcnow
from repositories.base import Page
from repositories.lead_repo import LeadRepository
from repositories.user_repo import UserRepository
from services.audit_service import AuditService
from services.authz_service import Principal

EDITABLE_FIELDS = ("title", "company", "contact_name", "email", "phone", "source", "status", "notes")


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, (LeadStatus, LeadSource)) else value


def lead_snapshot(lead: Lead) -> dict[str, Any]:
    snapshot = {field: getattr(lead, field) for field in EDITABLE_FIELDS}
    snapshot["owner_user_id"] = lead.owner_user_id
    return snapshot


class LeadService:
    def __init__(self, db: AsyncSession) -> None:
        self.repo = LeadRepository(db)
        self.user_repo = UserRepository(db)
        self.audit = AuditService(db)

    async def _validate_owner(self, organization_id: str, owner_user_id: str) -> None:
        owner = await self.user_repo.get_by_id_in_org(owner_user_id, organization_id)
        if owner is None or not owner.is_active:
            raise ValidationError("Owner must be an active user of the organization", field="owner_user_id")

    async def _get_scoped(
        self, principal: Principal, lead_id: str, all_permission: Permission, own_permission: Permission
    ) -> Lead:
        lead = await self.repo.get_by_id_in_org(lead_id, principal.organization_id)
        if lead is None:
            raise NotFoundError("Lead", lead_id)
        if principal.owns_only(all_permission, own_permission) and lead.owner_user_id != principal.user_id:
            raise ForbiddenError("You can only access your own leads")
        return lead

    async def create_lead(self, principal: Principal, data: dict[str, Any]) -> Lead:
        owner_user_id = data.pop("owner_user_id", None) or principal.user_id
        if owner_user_id != principal.user_id:
            if not principal.has(Permission.LEAD_ASSIGN):
                raise ForbiddenError("Creating leads for other users requires lead.assign")
            await self._validate_owner(principal.organization_id, owner_user_id)

        lead = await self.repo.create(
            Lead(
                organization_id=principal.organization_id,
                owner_user_id=owner_user_id,
                **{field: _plain(value) for field, value in data.items() if field in EDITABLE_FIELDS},
            )
        )

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.CREATE,
            entity_type=AuditEntityType.LEAD,
            entity_id=lead.id,
            after=lead_snapshot(lead),
        )
        return lead

    async def get_lead(self, principal: Principal, lead_id: str) -> Lead:
        return await self._get_scoped(principal, lead_id, Permission.LEAD_VIEW_ALL, Permission.LEAD_VIEW_OWN)

    async def list_leads(
        self,
        principal: Principal,
        *,
        status: LeadStatus | None = None,
        source: LeadSource | None = None,
        owner_user_id: str | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Lead]:
        if principal.owns_only(Permission.LEAD_VIEW_ALL, Permission.LEAD_VIEW_OWN):
            owner_user_id = principal.user_id

        return await self.repo.list_leads(
            principal.organization_id,
            owner_user_id=owner_user_id,
            status=status.value if status else None,
            source=source.value if source else None,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=page_size,
        )

    async def update_lead(self, principal: Principal, lead_id: str, changes: dict[str, Any]) -> Lead:
        if not changes:
            raise ValidationError("At least one field must be provided for update")

        lead = await self._get_scoped(principal, lead_id, Permission.LEAD_EDIT_ALL, Permission.LEAD_EDIT_OWN)
        before = lead_snapshot(lead)

        for field, value in changes.items():
            if field in EDITABLE_FIELDS:
                setattr(lead, field, _plain(value))
        lead = await self.repo.update(lead)

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.LEAD,
            entity_id=lead.id,
            before=before,
            after=lead_snapshot(lead),
        )
        return lead

    async def delete_lead(self, principal: Principal, lead_id: str) -> None:
        """Soft delete"""
        lead = await self._get_scoped(
            principal, lead_id, Permission.LEAD_DELETE_ALL, Permission.LEAD_DELETE_OWN
        )
        before = lead_snapshot(lead)
        lead.deleted_at = utcnow()
        await self.repo.update(lead)

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.DELETE,
            entity_type=AuditEntityType.LEAD,
            entity_id=lead.id,
            before=before,
        )

    async def assign_lead(self, principal: Principal, lead_id: str, owner_user_id: str) -> Lead:
        lead = await self.repo.get_by_id_in_org(lead_id, principal.organization_id)
        if lead is None:
            raise NotFoundError("Lead", lead_id)
        await self._validate_owner(principal.organization_id, owner_user_id)

        previous_owner = lead.owner_user_id
        lead.owner_user_id = owner_user_id
        lead = await self.repo.update(lead)

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.ASSIGN,
            entity_type=AuditEntityType.LEAD,
            entity_id=lead.id,
            before={"owner_user_id": previous_owner},
            after={"owner_user_id": owner_user_id},
            metadata={"new_owner": owner_user_id},
        )
        return lead
