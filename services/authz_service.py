from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import PermissionDeniedError
from core.logging import get_logger
from core.permissions import Permission
from models.user import User
from repositories.role_repo import RoleRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated user plus the permissions resolved for this request"""

    user: User
    permissions: frozenset[Permission]

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def organization_id(self) -> str:
        return self.user.organization_id

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions

    def owns_only(self, all_permission: Permission, own_permission: Permission) -> bool:
        """
        True when access is limited to the caller's own records: the caller
        holds the ``own`` variant but not the ``all`` one.
        """
        return own_permission in self.permissions and all_permission not in self.permissions


class AuthorizationService:
    """
    Centralized permission checking.
    Follow principle: "Check permissions, not roles"

    Permissions are resolved from the database on every call. Nothing is
    cached, so role edits take effect for access tokens already issued.
    """

    def __init__(self, db: AsyncSession):
        self.role_repo = RoleRepository(db)

    async def resolve_permissions(self, user: User) -> frozenset[Permission]:
        """
        Effective permissions of a user: the union of the permission sets of
        every role assigned to them within their own organization.
        """
        permission_sets = await self.role_repo.get_permission_sets_for_user(
            user.id, user.organization_id
        )

        resolved: set[Permission] = set()
        for permissions in permission_sets:
            for value in permissions:
                try:
                    resolved.add(Permission(value))
                except ValueError:
                    logger.warning("Ignoring unknown permission %r on a role of user %s", value, user.id)
        return frozenset(resolved)

    @staticmethod
    def has_any(granted: Iterable[Permission], required: Iterable[Permission]) -> bool:
        granted_set = set(granted)
        return any(permission in granted_set for permission in required)

    @staticmethod
    def has_all(granted: Iterable[Permission], required: Iterable[Permission]) -> bool:
        return set(required).issubset(set(granted))

    async def require_any(self, user: User, required: list[Permission]) -> frozenset[Permission]:
        """Raise PermissionDeniedError unless the user holds at least one of ``required``"""
        granted = await self.resolve_permissions(user)
        if not self.has_any(granted, required):
            raise PermissionDeniedError([p.value for p in required], mode="any")
        return granted

    async def require_all(self, user: User, required: list[Permission]) -> frozenset[Permission]:
        """Raise PermissionDeniedError unless the user holds every one of ``required``"""
        granted = await self.resolve_permissions(user)
        if not self.has_all(granted, required):
            raise PermissionDeniedError([p.value for p in required], mode="all")
        return granted
