from sqlalchemy import Select, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import ProjectStatus, SortOrder
from models.project import Project, ProjectMember
from repositories.base import LIKE_ESCAPE, BaseRepository, Page, contains_pattern

SORTABLE_FIELDS = {
    "name": Project.name,
    "created_at": Project.created_at,
    "updated_at": Project.updated_at,
    "start_date": Project.start_date,
    "end_date": Project.end_date,
    "budget": Project.budget,
}


class ProjectRepository(BaseRepository[Project]):
    """Repository for Project operations; soft-deleted projects are never returned"""

    conflict_message = "User is already a member of this project"

    def __init__(self, db: AsyncSession):
        super().__init__(db, Project)

    async def get_by_id_in_org(self, id: str, organization_id: str) -> Project | None:
        result = await self.db.execute(
            select(Project).where(
                Project.id == id,
                Project.organization_id == organization_id,
                Project.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _involves(user_id: str):
        """Managed by the user, or the user is a member"""
        return or_(
            Project.manager_user_id == user_id,
            exists().where(ProjectMember.project_id == Project.id, ProjectMember.user_id == user_id),
        )

    async def list_projects(
        self,
        organization_id: str,
        *,
        involving_user_id: str | None = None,
        status: str | None = None,
        manager_user_id: str | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Project]:
        query: Select = select(Project).where(
            Project.organization_id == organization_id, Project.deleted_at.is_(None)
        )

        if involving_user_id:
            query = query.where(self._involves(involving_user_id))
        if status:
            query = query.where(Project.status == status)
        if manager_user_id:
            query = query.where(Project.manager_user_id == manager_user_id)
        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    func.lower(Project.name).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Project.client).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Project.description).like(pattern, escape=LIKE_ESCAPE),
                )
            )

        column = SORTABLE_FIELDS.get(sort_by, Project.created_at)
        ordering = column.asc() if sort_order == SortOrder.ASC else column.desc()
        query = query.order_by(ordering, Project.id)
        return await self.paginate(query, page, page_size)

    async def is_involved(self, project: Project, user_id: str) -> bool:
        if project.manager_user_id == user_id:
            return True
        return await self.get_member(project.id, user_id) is not None

    async def get_members(self, project_id: str) -> list[ProjectMember]:
        result = await self.db.execute(
            select(ProjectMember)
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.added_at, ProjectMember.id)
        )
        return list(result.scalars().all())

    async def get_member(self, project_id: str, user_id: str) -> ProjectMember | None:
        result = await self.db.execute(
            select(ProjectMember).where(
                ProjectMember.project_id == project_id, ProjectMember.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def add_member(self, member: ProjectMember) -> ProjectMember:
        self.db.add(member)
        await self._flush()
        await self.db.refresh(member)
        return member

    async def remove_member(self, member: ProjectMember) -> None:
        await self.db.delete(member)
        await self.db.flush()

    async def count_by_status(self, organization_id: str) -> dict[str, int]:
        result = await self.db.execute(
            select(Project.status, func.count())
            .where(Project.organization_id == organization_id, Project.deleted_at.is_(None))
            .group_by(Project.status)
        )
        counts = {status: 0 for status in ProjectStatus.values()}
        counts.update({status: count for status, count in result.all()})
        return counts

    async def count_managed_by(self, user_id: str, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Project)
            .where(
                Project.manager_user_id == user_id,
                Project.organization_id == organization_id,
                Project.deleted_at.is_(None),
            )
        )
        return result.scalar_one()
