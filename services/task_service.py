"""
Task operations.

A task belongs to exactly one project, and creating one requires read access
to that project. With only the ``.own`` variant of a task permission the
caller is limited to tasks assigned to them or created by them.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import AuditAction, AuditEntityType, SortOrder, TaskPriority, TaskStatus
from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from core.permissions import Permission
from models.mixins import utcnow
from models.task import Task
from repositories.base import Page
from repositories.task_repo import TaskRepository
from repositories.user_repo import UserRepository
from services.audit_service import AuditService
from services.authz_service import Principal
from services.project_service import ProjectService

EDITABLE_FIELDS = ("title", "description", "status", "priority", "assignee_user_id", "due_date")

TASK_VIEW_PERMISSIONS = (Permission.TASK_VIEW_ALL, Permission.TASK_VIEW_OWN)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, (TaskStatus, TaskPriority)) else value


def task_snapshot(task: Task) -> dict[str, Any]:
    snapshot = {field: getattr(task, field) for field in EDITABLE_FIELDS}
    snapshot["project_id"] = task.project_id
    return snapshot


class TaskService:
    def __init__(self, db: AsyncSession) -> None:
        self.repo = TaskRepository(db)
        self.user_repo = UserRepository(db)
        self.projects = ProjectService(db)
        self.audit = AuditService(db)

    async def _validate_assignee(self, organization_id: str, user_id: str) -> None:
        assignee = await self.user_repo.get_by_id_in_org(user_id, organization_id)
        if assignee is None or not assignee.is_active:
            raise ValidationError("Assignee must be an active user of the organization", field="assignee_user_id")

    async def _get_scoped(
        self, principal: Principal, task_id: str, all_permission: Permission, own_permission: Permission
    ) -> Task:
        task = await self.repo.get_by_id_in_org(task_id, principal.organization_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        if principal.owns_only(all_permission, own_permission) and principal.user_id not in (
            task.assignee_user_id,
            task.created_by,
        ):
            raise ForbiddenError("You can only access your own tasks")
        return task

    async def create_task(self, principal: Principal, data: dict[str, Any]) -> Task:
        """
        Raises:
            PermissionDeniedError / ForbiddenError: the project is not visible to the caller
            NotFoundError: project missing, deleted or in another organization
            ValidationError: assignee is not an active user of the organization
        """
        project = await self.projects.require_visible(principal, data.pop("project_id"))
        if data.get("assignee_user_id"):
            await self._validate_assignee(principal.organization_id, data["assignee_user_id"])

        task = await self.repo.create(
            Task(
                organization_id=principal.organization_id,
                project_id=project.id,
                created_by=principal.user_id,
                **{field: _plain(value) for field, value in data.items() if field in EDITABLE_FIELDS},
            )
        )

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.CREATE,
            entity_type=AuditEntityType.TASK,
            entity_id=task.id,
            after=task_snapshot(task),
        )
        return task

    async def get_task(self, principal: Principal, task_id: str) -> Task:
        return await self._get_scoped(principal, task_id, *TASK_VIEW_PERMISSIONS)

    async def list_tasks(
        self,
        principal: Principal,
        *,
        project_id: str | None = None,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        assignee_user_id: str | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Task]:
        involving_user_id = None
        if principal.owns_only(*TASK_VIEW_PERMISSIONS):
            involving_user_id = principal.user_id

        return await self.repo.list_tasks(
            principal.organization_id,
            involving_user_id=involving_user_id,
            project_id=project_id,
            status=status.value if status else None,
            priority=priority.value if priority else None,
            assignee_user_id=assignee_user_id,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=page_size,
        )

    async def list_project_tasks(self, principal: Principal, project_id: str, **filters: Any) -> Page[Task]:
        """Tasks of one project the caller can see"""
        project = await self.projects.require_visible(principal, project_id)
        return await self.list_tasks(principal, project_id=project.id, **filters)

    async def list_my_tasks(self, principal: Principal, **filters: Any) -> Page[Task]:
        """Tasks assigned to the caller"""
        return await self.list_tasks(principal, assignee_user_id=principal.user_id, **filters)

    async def update_task(self, principal: Principal, task_id: str, changes: dict[str, Any]) -> Task:
        if not changes:
            raise ValidationError("At least one field must be provided for update")

        task = await self._get_scoped(principal, task_id, Permission.TASK_EDIT_ALL, Permission.TASK_EDIT_OWN)
        if changes.get("assignee_user_id"):
            await self._validate_assignee(principal.organization_id, changes["assignee_user_id"])

        before = task_snapshot(task)
        for field, value in changes.items():
            if field in EDITABLE_FIELDS:
                setattr(task, field, _plain(value))
        task = await self.repo.update(task)

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.TASK,
            entity_id=task.id,
            before=before,
            after=task_snapshot(task),
        )
        return task

    async def delete_task(self, principal: Principal, task_id: str) -> None:
        """Soft delete"""
        task = await self._get_scoped(principal, task_id, Permission.TASK_DELETE_ALL, Permission.TASK_DELETE_OWN)
        before = task_snapshot(task)
        task.deleted_at = utcnow()
        await self.repo.update(task)

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.DELETE,
            entity_type=AuditEntityType.TASK,
            entity_id=task.id,
            before=before,
        )
