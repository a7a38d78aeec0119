"""
Authentication flows: registration, login, token refresh, logout and the
password/email-verification lifecycle.

Every method runs inside the caller's unit of work and never commits.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import verify_access_token
from core.config import get_settings
from core.enums import AuditAction, AuditEntityType, TokenType, UserStatus
from core.exceptions import ConflictError, UnauthorizedError
from core.logging import get_logger
from models.organization import Organization
from models.user import User
from repositories.organization_repo import OrganizationRepository
from repositories.user_repo import UserRepository
from services.audit_service import AuditService
from services.organization_initialization_service import OrganizationInitializationService
from services.token_service import TokenPair, TokenService

logger = get_logger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset link has been sent"


@dataclass(frozen=True)
class Identity:
    """Claims of a verified access token"""

    user_id: str
    organization_id: str


def authenticate(access_token: str) -> Identity:
    """
    Stateless access-token check: signature and expiry only.

    Raises:
        UnauthorizedError: for any invalid, expired or malformed token
    """
    payload = verify_access_token(access_token)
    return Identity(user_id=payload["sub"], organization_id=payload["org_id"])


class AuthService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.settings = get_settings()
        self.organization_repo = OrganizationRepository(db)
        self.user_repo = UserRepository(db)
        self.tokens = TokenService(db)
        self.audit = AuditService(db)

    async def load_active_user(self, identity: Identity) -> User:
        """Load the user behind a verified token; inactive or missing users are rejected"""
        user = await self.user_repo.get_by_id_in_org(identity.user_id, identity.organization_id)
        if user is None:
            raise UnauthorizedError("User not found")
        if not user.is_active:
            raise UnauthorizedError("Account is not active")
        return user

    async def register(
        self,
        organization_name: str,
        domain: str,
        name: str,
        email: str,
        password: str,
    ) -> tuple[Organization, User, TokenPair]:
        """
        Create an organization with its system roles and a SuperAdmin user.

        Raises:
            ConflictError: if the domain is already taken
        """
        domain = domain.strip().lower()
        if await self.organization_repo.get_by_domain(domain):
            raise ConflictError("Organization domain already exists", details={"field": "domain"})

        organization = await self.organization_repo.create(
            Organization(name=organization_name.strip(), domain=domain)
        )
        user = await self.user_repo.create_user(organization.id, name, email, password)

        initializer = OrganizationInitializationService(self.db)
        roles = await initializer.create_system_roles(organization.id)
        await initializer.assign_super_admin(organization.id, user.id, roles)

        await self.audit.record(
            organization_id=organization.id,
            user_id=user.id,
            action=AuditAction.CREATE,
            entity_type=AuditEntityType.ORGANIZATION,
            entity_id=organization.id,
            after={"name": organization.name, "domain": organization.domain},
            metadata={"action": "register", "roles_created": len(roles)},
        )
        logger.info("Registered organization %s (%s)", organization.id, organization.domain)

        tokens = await self.tokens.issue_token_pair(user.id, organization.id)
        return organization, user, tokens

    async def login(self, domain: str, email: str, password: str) -> tuple[User, TokenPair]:
        """
        Raises:
            UnauthorizedError: invalid credentials or a non-active account
        """
        organization = await self.organization_repo.get_by_domain(domain)
        # Unknown organizations still pay the hashing cost
        user = await self.user_repo.authenticate(
            organization.id if organization else "", email, password
        )
        if organization is None or user is None:
            raise UnauthorizedError("Invalid credentials")
        if not user.is_active:
            raise UnauthorizedError("Account is not active")

        user.last_login_at = datetime.now(UTC)
        await self.user_repo.update(user)

        await self.audit.record(
            organization_id=user.organization_id,
            user_id=user.id,
            action=AuditAction.LOGIN,
            entity_type=AuditEntityType.USER,
            entity_id=user.id,
        )

        tokens = await self.tokens.issue_token_pair(user.id, user.organization_id)
        return user, tokens

    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Rotate a refresh token: revoke the presented one and issue a new pair.

        Raises:
            UnauthorizedError: invalid/used/expired token or inactive user
        """
        token = await self.tokens.consume_refresh_token(refresh_token)

        user = await self.user_repo.get_by_id(token.user_id)
        if user is None or not user.is_active:
            raise UnauthorizedError("Account is not active")

        return await self.tokens.issue_token_pair(user.id, user.organization_id)

    async def logout(self, user: User, refresh_token: str) -> None:
        """Revoke only the presented refresh token"""
        revoked = await self.tokens.revoke_refresh_token(user.id, refresh_token)
        await self.audit.record(
            organization_id=user.organization_id,
            user_id=user.id,
            action=AuditAction.LOGOUT,
            entity_type=AuditEntityType.USER,
            entity_id=user.id,
            metadata={"token_revoked": revoked},
        )

    async def forgot_password(self, domain: str, email: str) -> str | None:
        """
        Issue a password reset token for an active user.

        The caller always reports the same message, whether or not the
        account exists. Returns the plaintext token (None when no token was
        issued) so non-production environments can surface it.
        """
        organization = await self.organization_repo.get_by_domain(domain)
        if organization is None:
            return None
        user = await self.user_repo.get_by_email_in_org(email, organization.id)
        if user is None or not user.is_active:
            return None

        token = await self.tokens.issue_one_time_token(
            user,
            TokenType.PASSWORD_RESET,
            timedelta(minutes=self.settings.password_reset_expire_minutes),
        )
        if not self.settings.is_production:
            # Email delivery is not wired up; surface the token for local use
            logger.info("Password reset token for %s: %s", user.email, token)
        return token

    async def reset_password(self, token: str, new_password: str) -> None:
        """
        Consume a reset token, set the password and end every session.

        Raises:
            UnauthorizedError: invalid, used or expired token
        """
        consumed = await self.tokens.consume_one_time_token(token, TokenType.PASSWORD_RESET)
        user = await self.user_repo.get_by_id(consumed.user_id)
        if user is None:
            raise UnauthorizedError("Invalid or expired token")

        await self.user_repo.set_password(user, new_password)
        await self.tokens.revoke_all_refresh_tokens(user.id)

        await self.audit.record(
            organization_id=user.organization_id,
            user_id=user.id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.USER,
            entity_id=user.id,
            metadata={"action": "password_reset"},
        )

    async def verify_email_and_activate(self, token: str, password: str) -> tuple[User, TokenPair]:
        """
        Activate an invited user: consume the verification token, set the
        password and sign them in.

        Raises:
            UnauthorizedError: invalid token, or the account is not pending
            ConflictError: the account is already active
        """
        consumed = await self.tokens.consume_one_time_token(token, TokenType.EMAIL_VERIFY)
        user = await self.user_repo.get_by_id(consumed.user_id)
        if user is None:
            raise UnauthorizedError("Invalid or expired token")
        if user.status == UserStatus.ACTIVE.value:
            raise ConflictError("Account is already active")
        if user.status != UserStatus.PENDING.value:
            raise UnauthorizedError("Account cannot be activated")

        before = {"status": user.status}
        user.status = UserStatus.ACTIVE.value
        await self.user_repo.set_password(user, password)

        await self.audit.record(
            organization_id=user.organization_id,
            user_id=user.id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.USER,
            entity_id=user.id,
            before=before,
            after={"status": user.status},
            metadata={"action": "email_verified"},
        )

        tokens = await self.tokens.issue_token_pair(user.id, user.organization_id)
        return user, tokens

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """
        Raises:
            UnauthorizedError: current password is wrong
            ConflictError: new password equals the current one
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise UnauthorizedError("User not found")

        verified = await self.user_repo.authenticate(user.organization_id, user.email, current_password)
        if verified is None:
            raise UnauthorizedError("Current password is incorrect")
        if current_password == new_password:
            raise ConflictError("New password must be different from the current password")

        await self.user_repo.set_password(user, new_password)
        await self.tokens.revoke_all_refresh_tokens(user.id)

        await self.audit.record(
            organization_id=user.organization_id,
            user_id=user.id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.USER,
            entity_id=user.id,
            metadata={"action": "password_change"},
        )
