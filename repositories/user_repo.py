import asyncio
from functools import lru_cache

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_password_hash, verify_password
from core.enums import SortOrder, UserStatus
from models.role import Role, UserRole
from models.user import User
from repositories.base import LIKE_ESCAPE, BaseRepository, Page, contains_pattern

SORTABLE_FIELDS = {
    "name": User.name,
    "email": User.email,
    "created_at": User.created_at,
    "last_login_at": User.last_login_at,
}


@lru_cache
def _dummy_hash() -> str:
    """Real bcrypt hash so unknown-user logins cost as much as wrong passwords"""
    return get_password_hash("timing-attack-placeholder")


class UserRepository(BaseRepository[User]):
    """Repository for User operations (data access only)"""

    conflict_message = "A user with this email already exists in the organization"

    def __init__(self, db: AsyncSession):
        super().__init__(db, User)

    async def get_by_email_in_org(self, email: str, organization_id: str) -> User | None:
        """Get user by email within a specific organization"""
        result = await self.db.execute(
            select(User).where(
                User.email == email.strip().lower(),
                User.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def authenticate(self, organization_id: str, email: str, password: str) -> User | None:
        """
        Check credentials.

        Returns the user when the password matches, None otherwise. Status
        checks are left to the caller so it can report inactive accounts.
        """
        user = await self.get_by_email_in_org(email, organization_id)

        if not user:
            await asyncio.to_thread(verify_password, password, _dummy_hash())
            return None

        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            return None

        return user

    async def create_user(
        self,
        organization_id: str,
        name: str,
        email: str,
        password: str,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> User:
        """Create a new user, hashing the password before the row is built"""
        password_hash = await asyncio.to_thread(get_password_hash, password)
        user = User(
            organization_id=organization_id,
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=password_hash,
            status=status.value,
        )
        return await self.create(user)

    async def set_password(self, user: User, new_password: str) -> User:
        user.password_hash = await asyncio.to_thread(get_password_hash, new_password)
        return await self.update(user)

    async def get_roles(self, user: User) -> list[Role]:
        """Roles assigned to the user, in assignment order, from the user's organization only"""
        result = await self.db.execute(
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id == user.id,
                Role.organization_id == user.organization_id,
            )
            .order_by(UserRole.position)
        )
        return list(result.scalars().all())

    async def get_roles_for_users(self, users: list[User]) -> dict[str, list[Role]]:
        """Batch variant of get_roles for list endpoints"""
        if not users:
            return {}
        result = await self.db.execute(
            select(UserRole.user_id, Role)
            .join(Role, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id.in_([user.id for user in users]),
                Role.organization_id == users[0].organization_id,
            )
            .order_by(UserRole.position)
        )
        roles: dict[str, list[Role]] = {user.id: [] for user in users}
        for user_id, role in result.all():
            roles[user_id].append(role)
        return roles

    async def replace_roles(self, user: User, roles: list[Role]) -> None:
        """Replace the user's role list, keeping the given order"""
        await self.db.execute(delete(UserRole).where(UserRole.user_id == user.id))
        self.db.add_all(
            [
                UserRole(
                    organization_id=user.organization_id,
                    user_id=user.id,
                    role_id=role.id,
                    position=position,
                )
                for position, role in enumerate(roles)
            ]
        )
        await self._flush()

    async def list_users(
        self,
        organization_id: str,
        *,
        search: str | None = None,
        statuses: list[str] | None = None,
        role_id: str | None = None,
        sort_by: str = "created_at",
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        page_size: int = 25,
    ) -> Page[User]:
        query: Select = select(User).where(User.organization_id == organization_id)

        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    func.lower(User.name).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(User.email).like(pattern, escape=LIKE_ESCAPE),
                )
            )
        if statuses:
            query = query.where(User.status.in_(statuses))
        if role_id:
            query = query.where(
                User.id.in_(select(UserRole.user_id).where(UserRole.role_id == role_id))
            )

        column = SORTABLE_FIELDS.get(sort_by, User.created_at)
        ordering = column.asc() if sort_order == SortOrder.ASC else column.desc()
        query = query.order_by(ordering, User.id)

        return await self.paginate(query, page, page_size)

    async def count_by_status(self, organization_id: str) -> dict[str, int]:
        result = await self.db.execute(
            select(User.status, func.count())
            .where(User.organization_id == organization_id)
            .group_by(User.status)
        )
        counts = {status: 0 for status in UserStatus.values()}
        counts.update({status: count for status, count in result.all()})
        return counts
