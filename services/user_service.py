from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.enums import AuditAction, AuditEntityType, SortOrder, TokenType, UserStatus
from core.exceptions import BadRequestError, ConflictError, NotFoundError, ValidationError
from core.logging import get_logger
from models.role import Role
from models.user import User
from repositories.base import Page
from repositories.lead_repo import LeadRepository
from repositories.project_repo import ProjectRepository
from repositories.role_repo import RoleRepository
from repositories.task_repo import TaskRepository
from repositories.user_repo import UserRepository
from services.audit_service import AuditService
from services.token_service import TokenService
from utils.generators import generate_unusable_password

logger = get_logger(__name__)


@dataclass
class UserWithRoles:
    user: User
    roles: list[Role]
    stats: dict[str, int] = field(default_factory=dict)


@dataclass
class Invitation:
    user: User
    roles: list[Role]
    verification_token: str


def user_snapshot(user: User, roles: list[Role]) -> dict[str, Any]:
    return {
        "name": user.name,
        "email": user.email,
        "status": user.status,
        "roles": [role.name for role in roles],
    }


class UserService:
    """User administration inside one organization"""

    def __init__(self, db: AsyncSession) -> None:
        self.settings = get_settings()
        self.repo = UserRepository(db)
        self.role_repo = RoleRepository(db)
        self.lead_repo = LeadRepository(db)
        self.project_repo = ProjectRepository(db)
        self.task_repo = TaskRepository(db)
        self.tokens = TokenService(db)
        self.audit = AuditService(db)

    async def _resolve_role_names(self, organization_id: str, role_names: list[str]) -> list[Role]:
        """Map role names to roles, preserving the requested order"""
        if len(set(role_names)) != len(role_names):
            raise ValidationError("Duplicate role names are not allowed", field="role_names")

        found = {role.name: role for role in await self.role_repo.get_by_names_in_org(role_names, organization_id)}
        missing = [name for name in role_names if name not in found]
        if missing:
            raise BadRequestError("One or more roles do not exist", details={"roles": missing})
        return [found[name] for name in role_names]

    async def _get_or_404(self, organization_id: str, user_id: str) -> User:
        user = await self.repo.get_by_id_in_org(user_id, organization_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def invite_user(
        self,
        organization_id: str,
        actor_id: str,
        name: str,
        email: str,
        role_names: list[str],
    ) -> Invitation:
        """
        Create a pending user and an email verification token.

        Raises:
            ConflictError: the email is already used in the organization
            BadRequestError: a requested role does not exist
        """
        if await self.repo.get_by_email_in_org(email, organization_id):
            raise ConflictError("User with this email already exists", details={"field": "email"})

        roles = await self._resolve_role_names(organization_id, role_names)

        user = await self.repo.create_user(
            organization_id,
            name,
            email,
            generate_unusable_password(),
            status=UserStatus.PENDING,
        )
        await self.repo.replace_roles(user, roles)

        token = await self.tokens.issue_one_time_token(
            user,
            TokenType.EMAIL_VERIFY,
            timedelta(days=self.settings.email_verify_expire_days),
        )

        await self.audit.record(
            organization_id=organization_id,
            user_id=actor_id,
            action=AuditAction.INVITE,
            entity_type=AuditEntityType.USER,
            entity_id=user.id,
            after=user_snapshot(user, roles),
        )
        if not self.settings.is_production:
            logger.info("Email verification token for %s: %s", user.email, token)
        return Invitation(user=user, roles=roles, verification_token=token)

    async def list_users(
        self,
        organization_id: str,
        *,
        search: str | None = None,
        statuses: list[str] | None = None,
        role_name: str | None = None,
        sort_by: str = "created_at",
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        page_size: int = 25,
    ) -> tuple[Page[User], dict[str, list[Role]]]:
        for status in statuses or []:
            if status not in UserStatus.values():
                raise ValidationError(f"Invalid status: {status}", field="status")

        role_id = None
        if role_name:
            role = await self.role_repo.get_by_name_in_org(role_name, organization_id)
            if role is None:
                return Page([], 0, page, page_size), {}
            role_id = role.id

        result = await self.repo.list_users(
            organization_id,
            search=search,
            statuses=statuses,
            role_id=role_id,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=page_size,
        )
        return result, await self.repo.get_roles_for_users(result.items)

    async def get_user(self, organization_id: str, user_id: str) -> UserWithRoles:
        user = await self._get_or_404(organization_id, user_id)
        return UserWithRoles(
            user=user,
            roles=await self.repo.get_roles(user),
            stats={
                "leads_owned": await self.lead_repo.count_owned_by(user.id, organization_id),
                "projects_managed": await self.project_repo.count_managed_by(user.id, organization_id),
                "tasks_assigned": await self.task_repo.count_assigned_to(user.id, organization_id),
            },
        )

    async def update_user(
        self,
        organization_id: str,
        actor_id: str,
        user_id: str,
        *,
        name: str | None = None,
        email: str | None = None,
        status: UserStatus | None = None,
        role_names: list[str] | None = None,
    ) -> UserWithRoles:
        """
        Raises:
            ValidationError: nothing to update
            NotFoundError: user missing or in another organization
            ConflictError: the new email belongs to another user
            BadRequestError: a requested role does not exist
        """
        if name is None and email is None and status is None and role_names is None:
            raise ValidationError("At least one field must be provided for update")

        user = await self._get_or_404(organization_id, user_id)
        roles = await self.repo.get_roles(user)
        before = user_snapshot(user, roles)

        if email is not None:
            email = email.strip().lower()
            if email != user.email:
                existing = await self.repo.get_by_email_in_org(email, organization_id)
                if existing and existing.id != user.id:
                    raise ConflictError("User with this email already exists", details={"field": "email"})
                user.email = email
        if name is not None:
            user.name = name.strip()
        if status is not None:
            user.status = status.value
        if role_names is not None:
            roles = await self._resolve_role_names(organization_id, role_names)
            await self.repo.replace_roles(user, roles)

        user = await self.repo.update(user)
        if status is not None and status != UserStatus.ACTIVE:
            await self.tokens.revoke_all_refresh_tokens(user.id)

        await self.audit.record(
            organization_id=organization_id,
            user_id=actor_id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.USER,
            entity_id=user.id,
            before=before,
            after=user_snapshot(user, roles),
        )
        return UserWithRoles(user=user, roles=roles)

    async def delete_user(self, organization_id: str, actor_id: str, user_id: str) -> None:
        """
        Soft delete: mark the user inactive and revoke every token.

        Raises:
            BadRequestError: users cannot delete themselves
            NotFoundError: user missing or in another organization
        """
        if user_id == actor_id:
            raise BadRequestError("You cannot delete your own account")

        user = await self._get_or_404(organization_id, user_id)
        before = {"status": user.status}

        user.status = UserStatus.INACTIVE.value
        await self.repo.update(user)
        revoked = await self.tokens.revoke_all_tokens(user.id)

        await self.audit.record(
            organization_id=organization_id,
            user_id=actor_id,
            action=AuditAction.DELETE,
            entity_type=AuditEntityType.USER,
            entity_id=user.id,
            before=before,
            after={"status": user.status},
            metadata={"tokens_revoked": revoked},
        )
