from datetime import datetime

from sqlalchemy import Select, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import SortOrder, TaskPriority, TaskStatus
from models.task import Task
from repositories.base import LIKE_ESCAPE, BaseRepository, Page, contains_pattern

# Priority is stored as text; rank it so "urgent" sorts above "low"
PRIORITY_RANK = case(
    {priority.value: rank for rank, priority in enumerate(TaskPriority)},
    value=Task.priority,
)

SORTABLE_FIELDS = {
    "title": Task.title,
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
    "due_date": Task.due_date,
    "priority": PRIORITY_RANK,
}


class TaskRepository(BaseRepository[Task]):
    """Repository for Task operations; soft-deleted tasks are never returned"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Task)

    async def get_by_id_in_org(self, id: str, organization_id: str) -> Task | None:
        result = await self.db.execute(
            select(Task).where(
                Task.id == id,
                Task.organization_id == organization_id,
                Task.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def list_tasks(
        self,
        organization_id: str,
        *,
        involving_user_id: str | None = None,
        project_id: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        assignee_user_id: str | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Task]:
        """``involving_user_id`` keeps tasks assigned to or created by that user"""
        query: Select = select(Task).where(
            Task.organization_id == organization_id, Task.deleted_at.is_(None)
        )

        if involving_user_id:
            query = query.where(
                or_(Task.assignee_user_id == involving_user_id, Task.created_by == involving_user_id)
            )
        if project_id:
            query = query.where(Task.project_id == project_id)
        if status:
            query = query.where(Task.status == status)
        if priority:
            query = query.where(Task.priority == priority)
        if assignee_user_id:
            query = query.where(Task.assignee_user_id == assignee_user_id)
        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    func.lower(Task.title).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Task.description).like(pattern, escape=LIKE_ESCAPE),
                )
            )

        column = SORTABLE_FIELDS.get(sort_by, Task.created_at)
        ordering = column.asc() if sort_order == SortOrder.ASC else column.desc()
        query = query.order_by(ordering, Task.id)
        return await self.paginate(query, page, page_size)

    async def soft_delete_for_project(self, project_id: str, now: datetime) -> int:
        """Tombstone every live task of a project; returns how many were hidden"""
        result = await self.db.execute(
            update(Task)
            .where(Task.project_id == project_id, Task.deleted_at.is_(None))
            .values(deleted_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def count_by_status(self, organization_id: str) -> dict[str, int]:
        result = await self.db.execute(
            select(Task.status, func.count())
            .where(Task.organization_id == organization_id, Task.deleted_at.is_(None))
            .group_by(Task.status)
        )
        counts = {status: 0 for status in TaskStatus.values()}
        counts.update({status: count for status, count in result.all()})
        return counts

    async def count_assigned_to(self, user_id: str, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Task)
            .where(
                Task.assignee_user_id == user_id,
                Task.organization_id == organization_id,
                Task.deleted_at.is_(None),
            )
        )
        return result.scalar_one()
