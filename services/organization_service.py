import copy
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import AuditAction, AuditEntityType
from core.exceptions import ConflictError, NotFoundError, ValidationError
from models.organization import Organization
from repositories.attachment_repo import AttachmentRepository
from repositories.lead_repo import LeadRepository
from repositories.organization_repo import OrganizationRepository
from repositories.project_repo import ProjectRepository
from repositories.role_repo import RoleRepository
from repositories.task_repo import TaskRepository
from repositories.user_repo import UserRepository
from services.audit_service import AuditService


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``patch`` into a copy of ``base``; nested dicts merge, everything else replaces"""
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def organization_snapshot(organization: Organization) -> dict[str, Any]:
    return {
        "name": organization.name,
        "domain": organization.domain,
        "status": organization.status,
        "settings": copy.deepcopy(organization.settings),
    }


class OrganizationService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.repo = OrganizationRepository(db)
        self.audit = AuditService(db)

    async def get_organization(self, organization_id: str) -> Organization:
        organization = await self.repo.get_by_id(organization_id)
        if organization is None:
            raise NotFoundError("Organization", organization_id)
        return organization

    async def update_organization(
        self,
        organization_id: str,
        actor_id: str,
        *,
        name: str | None = None,
        domain: str | None = None,
        settings: dict[str, Any] | None = None,
    ) -> Organization:
        """
        Raises:
            ValidationError: nothing to update
            ConflictError: the domain belongs to another organization
        """
        if name is None and domain is None and settings is None:
            raise ValidationError("At least one field must be provided for update")

        organization = await self.get_organization(organization_id)
        before = organization_snapshot(organization)

        if domain is not None:
            domain = domain.strip().lower()
            if domain != organization.domain:
                existing = await self.repo.get_by_domain(domain)
                if existing and existing.id != organization.id:
                    raise ConflictError("Organization domain already exists", details={"field": "domain"})
                organization.domain = domain
        if name is not None:
            organization.name = name.strip()
        if settings is not None:
            # Reassign so the JSON column is flagged as changed
            organization.settings = deep_merge(organization.settings or {}, settings)

        organization = await self.repo.update(organization)

        await self.audit.record(
            organization_id=organization.id,
            user_id=actor_id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.ORGANIZATION,
            entity_id=organization.id,
            before=before,
            after=organization_snapshot(organization),
        )
        return organization

    async def get_organization_stats(self, organization_id: str) -> dict[str, Any]:
        await self.get_organization(organization_id)

        users_by_status = await UserRepository(self.db).count_by_status(organization_id)
        leads_by_status = await LeadRepository(self.db).count_by_status(organization_id)
        projects_by_status = await ProjectRepository(self.db).count_by_status(organization_id)
        tasks_by_status = await TaskRepository(self.db).count_by_status(organization_id)
        return {
            "users": {"total": sum(users_by_status.values()), "by_status": users_by_status},
            "leads": {"total": sum(leads_by_status.values()), "by_status": leads_by_status},
            "projects": {"total": sum(projects_by_status.values()), "by_status": projects_by_status},
            "tasks": {"total": sum(tasks_by_status.values()), "by_status": tasks_by_status},
            "roles": await RoleRepository(self.db).count_in_org(organization_id),
            "attachments": await AttachmentRepository(self.db).count_in_org(organization_id),
        }
