from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import AuditAction, AuditEntityType
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from core.logging import get_logger
from core.permissions import Permission
from models.role import Role
from models.user import User
from repositories.base import Page
from repositories.role_repo import RoleRepository
from services.audit_service import AuditService

logger = get_logger(__name__)

_UNSET: Any = object()


@dataclass
class RoleDetail:
    role: Role
    user_count: int
    users: list[User]


def role_snapshot(role: Role) -> dict[str, Any]:
    return {
        "name": role.name,
        "description": role.description,
        "permissions": list(role.permissions),
        "is_system": role.is_system,
    }


class RoleService:
    """Role registry: organization-scoped permission bundles"""

    def __init__(self, db: AsyncSession) -> None:
        self.repo = RoleRepository(db)
        self.audit = AuditService(db)

    async def _get_or_404(self, organization_id: str, role_id: str) -> Role:
        role = await self.repo.get_by_id_in_org(role_id, organization_id)
        if role is None:
            raise NotFoundError("Role", role_id)
        return role

    async def create_role(
        self,
        organization_id: str,
        actor_id: str,
        name: str,
        permissions: list[str],
        description: str = "",
    ) -> Role:
        """
        Create a custom (never system) role.

        Raises:
            ValidationError: empty, duplicated or unknown permissions
            ConflictError: a role with this name exists in the organization
        """
        parsed = Permission.parse_many(permissions)
        name = name.strip()

        if await self.repo.get_by_name_in_org(name, organization_id):
            raise ConflictError("Role with this name already exists", details={"field": "name"})

        role = await self.repo.create(
            Role(
                organization_id=organization_id,
                name=name,
                description=(description or "").strip(),
                permissions=[permission.value for permission in parsed],
                is_system=False,
            )
        )

        await self.audit.record(
            organization_id=organization_id,
            user_id=actor_id,
            action=AuditAction.CREATE,
            entity_type=AuditEntityType.ROLE,
            entity_id=role.id,
            after=role_snapshot(role),
        )
        return role

    async def update_role(
        self,
        organization_id: str,
        actor_id: str,
        role_id: str,
        *,
        name: str | None = _UNSET,
        description: str | None = _UNSET,
        permissions: list[str] | None = _UNSET,
    ) -> Role:
        """
        Partially update a custom role.

        Raises:
            ValidationError: nothing to update, or invalid permissions
            NotFoundError: role missing or in another organization
            ForbiddenError: the role is a system role
            ConflictError: the new name belongs to another role
        """
        # name and permissions cannot be cleared; null means "leave unchanged"
        if name is None:
            name = _UNSET
        if permissions is None:
            permissions = _UNSET
        if name is _UNSET and description is _UNSET and permissions is _UNSET:
            raise ValidationError("At least one field must be provided for update")

        role = await self._get_or_404(organization_id, role_id)
        if role.is_system:
            raise ForbiddenError("System roles cannot be modified")

        before = role_snapshot(role)

        if name is not _UNSET:
            name = name.strip()
            if name != role.name:
                existing = await self.repo.get_by_name_in_org(name, organization_id)
                if existing and existing.id != role.id:
                    raise ConflictError("Role with this name already exists", details={"field": "name"})
                role.name = name
        if description is not _UNSET:
            role.description = (description or "").strip()
        if permissions is not _UNSET:
            role.permissions = [permission.value for permission in Permission.parse_many(permissions)]

        role = await self.repo.update(role)

        await self.audit.record(
            organization_id=organization_id,
            user_id=actor_id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.ROLE,
            entity_id=role.id,
            before=before,
            after=role_snapshot(role),
        )
        return role

    async def delete_role(self, organization_id: str, actor_id: str, role_id: str) -> None:
        """
        Raises:
            NotFoundError: role missing or in another organization
            ForbiddenError: system role, or role still assigned to users
        """
        role = await self._get_or_404(organization_id, role_id)
        if role.is_system:
            raise ForbiddenError("System roles cannot be deleted")

        user_count = await self.repo.count_users(role.id)
        if user_count > 0:
            raise ForbiddenError(
                f"Cannot delete role. It is currently assigned to {user_count} user(s). "
                "Please reassign users before deleting.",
                details={"user_count": user_count},
            )

        before = role_snapshot(role)
        await self.repo.delete(role)

        await self.audit.record(
            organization_id=organization_id,
            user_id=actor_id,
            action=AuditAction.DELETE,
            entity_type=AuditEntityType.ROLE,
            entity_id=role_id,
            before=before,
        )
        logger.info("Deleted role %s in organization %s", role_id, organization_id)

    async def list_roles(
        self,
        organization_id: str,
        *,
        search: str | None = None,
        include_system: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[Page[Role], dict[str, int]]:
        """One page of roles plus a live user count per role"""
        result = await self.repo.list_roles(
            organization_id,
            search=search,
            include_system=include_system,
            page=page,
            page_size=page_size,
        )
        counts = await self.repo.count_users_by_role([role.id for role in result.items])
        return result, counts

    async def get_role(self, organization_id: str, role_id: str) -> RoleDetail:
        role = await self._get_or_404(organization_id, role_id)
        return RoleDetail(
            role=role,
            user_count=await self.repo.count_users(role.id),
            users=await self.repo.get_users(role.id, limit=10),
        )

    @staticmethod
    def get_all_permissions() -> dict[str, Any]:
        """Full permission catalog, flat and grouped by category"""
        return {"permissions": Permission.values(), "categories": Permission.grouped()}
