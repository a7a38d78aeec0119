from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.role import Role, UserRole
from models.user import User
from repositories.base import LIKE_ESCAPE, BaseRepository, Page, contains_pattern


class RoleRepository(BaseRepository[Role]):
    """Repository for Role operations"""

    conflict_message = "Role with this name already exists"

    def __init__(self, db: AsyncSession):
        super().__init__(db, Role)

    async def get_by_name_in_org(self, name: str, organization_id: str) -> Role | None:
        """Get role by name within a specific organization"""
        result = await self.db.execute(
            select(Role).where(Role.name == name, Role.organization_id == organization_id)
        )
        return result.scalar_one_or_none()

    async def get_by_names_in_org(self, names: list[str], organization_id: str) -> list[Role]:
        if not names:
            return []
        result = await self.db.execute(
            select(Role).where(Role.name.in_(names), Role.organization_id == organization_id)
        )
        return list(result.scalars().all())

    async def list_roles(
        self,
        organization_id: str,
        *,
        search: str | None = None,
        include_system: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Role]:
        query: Select = select(Role).where(Role.organization_id == organization_id)

        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    func.lower(Role.name).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Role.description).like(pattern, escape=LIKE_ESCAPE),
                )
            )
        if not include_system:
            query = query.where(Role.is_system.is_(False))

        query = query.order_by(Role.is_system.desc(), Role.name.asc())
        return await self.paginate(query, page, page_size)

    async def count_users(self, role_id: str) -> int:
        """Number of users currently holding the role"""
        result = await self.db.execute(
            select(func.count()).select_from(UserRole).where(UserRole.role_id == role_id)
        )
        return result.scalar_one()

    async def count_users_by_role(self, role_ids: list[str]) -> dict[str, int]:
        counts = {role_id: 0 for role_id in role_ids}
        if not role_ids:
            return counts
        result = await self.db.execute(
            select(UserRole.role_id, func.count())
            .where(UserRole.role_id.in_(role_ids))
            .group_by(UserRole.role_id)
        )
        counts.update({role_id: count for role_id, count in result.all()})
        return counts

    async def get_users(self, role_id: str, limit: int = 10) -> list[User]:
        result = await self.db.execute(
            select(User)
            .join(UserRole, UserRole.user_id == User.id)
            .where(UserRole.role_id == role_id)
            .order_by(User.name)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_permission_sets_for_user(self, user_id: str, organization_id: str) -> list[list[str]]:
        """
        Permission lists of every role assigned to the user.

        The join is restricted to roles of ``organization_id`` so a stray
        assignment to another organization's role never contributes.
        """
        result = await self.db.execute(
            select(Role.permissions)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id, Role.organization_id == organization_id)
        )
        return [list(permissions or []) for permissions in result.scalars().all()]

    async def count_in_org(self, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Role).where(Role.organization_id == organization_id)
        )
        return result.scalar_one()
