"""
Project operations with involvement scoping.

A caller holding only ``project.view.own`` sees projects they manage or are
a member of. Editing and deleting with only the ``.own`` variant is limited
to projects the caller manages.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import AuditAction, AuditEntityType, ProjectStatus, SortOrder
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, PermissionDeniedError, ValidationError
from core.logging import get_logger
from core.permissions import Permission
from models.mixins import utcnow
from models.project import Project, ProjectMember
from repositories.base import Page
from repositories.lead_repo import LeadRepository
from repositories.project_repo import ProjectRepository
from repositories.task_repo import TaskRepository
from repositories.user_repo import UserRepository
from services.audit_service import AuditService
from services.authz_service import Principal

logger = get_logger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "client",
    "status",
    "lead_id",
    "budget",
    "start_date",
    "end_date",
    "manager_user_id",
)

PROJECT_VIEW_PERMISSIONS = (Permission.PROJECT_VIEW_ALL, Permission.PROJECT_VIEW_OWN)


@dataclass
class ProjectDetail:
    project: Project
    members: list[ProjectMember] = field(default_factory=list)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, ProjectStatus) else value


def project_snapshot(project: Project) -> dict[str, Any]:
    return {field_name: getattr(project, field_name) for field_name in EDITABLE_FIELDS}


class ProjectService:
    def __init__(self, db: AsyncSession) -> None:
        self.repo = ProjectRepository(db)
        self.task_repo = TaskRepository(db)
        self.user_repo = UserRepository(db)
        self.lead_repo = LeadRepository(db)
        self.audit = AuditService(db)

    async def _validate_user(self, organization_id: str, user_id: str, field_name: str) -> None:
        user = await self.user_repo.get_by_id_in_org(user_id, organization_id)
        if user is None or not user.is_active:
            raise ValidationError("User must be an active user of the organization", field=field_name)

    async def _validate_lead(self, organization_id: str, lead_id: str) -> None:
        if await self.lead_repo.get_by_id_in_org(lead_id, organization_id) is None:
            raise ValidationError("Lead does not exist in the organization", field="lead_id")

    @staticmethod
    def _check_dates(start: date | None, end: date | None) -> None:
        if start and end and end <= start:
            raise ValidationError("end_date must be after start_date", field="end_date")

    async def _get_scoped(
        self, principal: Principal, project_id: str, all_permission: Permission, own_permission: Permission
    ) -> Project:
        project = await self.repo.get_by_id_in_org(project_id, principal.organization_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        if principal.owns_only(all_permission, own_permission):
            if own_permission is Permission.PROJECT_VIEW_OWN:
                allowed = await self.repo.is_involved(project, principal.user_id)
            else:
                allowed = project.manager_user_id == principal.user_id
            if not allowed:
                raise ForbiddenError("You can only access your own projects")
        return project

    async def require_visible(self, principal: Principal, project_id: str) -> Project:
        """
        Project the caller may read, for operations on things hanging off it.

        Raises:
            PermissionDeniedError: the caller holds no project view permission
            NotFoundError / ForbiddenError: as for get_project
        """
        if not any(principal.has(permission) for permission in PROJECT_VIEW_PERMISSIONS):
            raise PermissionDeniedError([p.value for p in PROJECT_VIEW_PERMISSIONS], mode="any")
        return await self._get_scoped(principal, project_id, *PROJECT_VIEW_PERMISSIONS)

    async def create_project(self, principal: Principal, data: dict[str, Any]) -> ProjectDetail:
        """
        Create a project with its initial members. The manager defaults to
        the caller.

        Raises:
            ValidationError: unknown/inactive manager or member, duplicate
                member, unknown lead, or end_date not after start_date
        """
        members = data.pop("members", None) or []
        manager_user_id = data.pop("manager_user_id", None) or principal.user_id
        if manager_user_id != principal.user_id:
            await self._validate_user(principal.organization_id, manager_user_id, "manager_user_id")
        if data.get("lead_id"):
            await self._validate_lead(principal.organization_id, data["lead_id"])
        self._check_dates(data.get("start_date"), data.get("end_date"))

        member_ids = [member["user_id"] for member in members]
        if len(set(member_ids)) != len(member_ids):
            raise ValidationError("Duplicate project members are not allowed", field="members")
        for user_id in member_ids:
            await self._validate_user(principal.organization_id, user_id, "members")

        project = await self.repo.create(
            Project(
                organization_id=principal.organization_id,
                manager_user_id=manager_user_id,
                **{name: _plain(value) for name, value in data.items() if name in EDITABLE_FIELDS},
            )
        )
        added = [
            await self.repo.add_member(
                ProjectMember(
                    organization_id=principal.organization_id,
                    project_id=project.id,
                    user_id=member["user_id"],
                    role=member.get("role") or "Member",
                )
            )
            for member in members
        ]

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.CREATE,
            entity_type=AuditEntityType.PROJECT,
            entity_id=project.id,
            after={**project_snapshot(project), "members": member_ids},
        )
        return ProjectDetail(project=project, members=added)

    async def get_project(self, principal: Principal, project_id: str) -> ProjectDetail:
        project = await self._get_scoped(principal, project_id, *PROJECT_VIEW_PERMISSIONS)
        return ProjectDetail(project=project, members=await self.repo.get_members(project.id))

    async def list_projects(
        self,
        principal: Principal,
        *,
        status: ProjectStatus | None = None,
        manager_user_id: str | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Project]:
        involving_user_id = None
        if principal.owns_only(*PROJECT_VIEW_PERMISSIONS):
            involving_user_id = principal.user_id

        return await self.repo.list_projects(
            principal.organization_id,
            involving_user_id=involving_user_id,
            status=status.value if status else None,
            manager_user_id=manager_user_id,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=page_size,
        )

    async def update_project(self, principal: Principal, project_id: str, changes: dict[str, Any]) -> Project:
        """
        Raises:
            ValidationError: nothing to update, invalid manager or lead, or the
                resulting dates are out of order
        """
        if not changes:
            raise ValidationError("At least one field must be provided for update")

        project = await self._get_scoped(
            principal, project_id, Permission.PROJECT_EDIT_ALL, Permission.PROJECT_EDIT_OWN
        )
        if changes.get("manager_user_id"):
            await self._validate_user(principal.organization_id, changes["manager_user_id"], "manager_user_id")
        if changes.get("lead_id"):
            await self._validate_lead(principal.organization_id, changes["lead_id"])
        self._check_dates(
            changes.get("start_date", project.start_date), changes.get("end_date", project.end_date)
        )

        before = project_snapshot(project)
        for name, value in changes.items():
            if name in EDITABLE_FIELDS:
                setattr(project, name, _plain(value))
        project = await self.repo.update(project)
        after = project_snapshot(project)

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.PROJECT,
            entity_id=project.id,
            before=before,
            after=after,
            metadata={"changed": [name for name in EDITABLE_FIELDS if before[name] != after[name]]},
        )
        return project

    async def delete_project(self, principal: Principal, project_id: str) -> None:
        """Soft delete the project together with its tasks"""
        project = await self._get_scoped(
            principal, project_id, Permission.PROJECT_DELETE_ALL, Permission.PROJECT_DELETE_OWN
        )
        before = project_snapshot(project)
        now = utcnow()
        project.deleted_at = now
        await self.repo.update(project)
        tasks_deleted = await self.task_repo.soft_delete_for_project(project.id, now)

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.DELETE,
            entity_type=AuditEntityType.PROJECT,
            entity_id=project.id,
            before=before,
            metadata={"tasks_deleted": tasks_deleted},
        )
        logger.info("Deleted project %s and %d task(s)", project.id, tasks_deleted)

    async def add_member(
        self, principal: Principal, project_id: str, user_id: str, role: str = "Member"
    ) -> ProjectMember:
        """
        Raises:
            ValidationError: user is not an active user of the organization
            ConflictError: user is already a member
        """
        project = await self._get_scoped(
            principal, project_id, Permission.PROJECT_EDIT_ALL, Permission.PROJECT_EDIT_OWN
        )
        await self._validate_user(principal.organization_id, user_id, "user_id")
        if await self.repo.get_member(project.id, user_id) is not None:
            raise ConflictError("User is already a member of this project", details={"field": "user_id"})

        member = await self.repo.add_member(
            ProjectMember(
                organization_id=principal.organization_id,
                project_id=project.id,
                user_id=user_id,
                role=role,
            )
        )
        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.ASSIGN,
            entity_type=AuditEntityType.PROJECT,
            entity_id=project.id,
            after={"user_id": user_id, "role": role},
            metadata={"member_added": user_id},
        )
        return member

    async def remove_member(self, principal: Principal, project_id: str, user_id: str) -> None:
        project = await self._get_scoped(
            principal, project_id, Permission.PROJECT_EDIT_ALL, Permission.PROJECT_EDIT_OWN
        )
        member = await self.repo.get_member(project.id, user_id)
        if member is None:
            raise NotFoundError("ProjectMember", user_id)

        before = {"user_id": member.user_id, "role": member.role}
        await self.repo.remove_member(member)
        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.ASSIGN,
            entity_type=AuditEntityType.PROJECT,
            entity_id=project.id,
            before=before,
            metadata={"member_removed": user_id},
        )
