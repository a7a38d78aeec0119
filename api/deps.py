from collections.abc import AsyncIterator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import UnitOfWork, get_db, get_unit_of_work
from core.exceptions import PermissionDeniedError, UnauthorizedError
from core.permissions import Permission
from core.rate_limit import RateLimiter
from core.storage_protocols import IStorageService
from models.user import User
from services.attachment_service import AttachmentService
from services.audit_service import AuditService
from services.auth_service import AuthService, authenticate
from services.authz_service import AuthorizationService, Principal
from services.lead_service import LeadService
from services.note_service import NoteService
from services.organization_service import OrganizationService
from services.project_service import ProjectService
from services.role_service import RoleService
from services.task_service import TaskService
from services.user_service import UserService

# Missing credentials are reported as 401 by get_current_user, not 403 by HTTPBearer
security = HTTPBearer(auto_error=False)

# Global service instances (singletons)
_storage_service: IStorageService | None = None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate the bearer access token and load its (active) user.
    The organization is taken from the token claims, never from a header.
    """
    if credentials is None:
        raise UnauthorizedError("Authentication required")
    identity = authenticate(credentials.credentials)
    return await AuthService(db).load_active_user(identity)


async def get_current_principal(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Current user with permissions resolved from their roles for this request"""
    permissions = await AuthorizationService(db).resolve_permissions(user)
    return Principal(user=user, permissions=permissions)


def require_any(*permissions: Permission):
    """
    Dependency factory for route-level permission checking.
    Passes when the caller holds at least one of ``permissions``.

    Usage:
        @router.get("/leads", dependencies=[Depends(require_any(Permission.LEAD_VIEW_ALL, Permission.LEAD_VIEW_OWN))])
    """
    required = list(permissions)

    async def permission_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not AuthorizationService.has_any(principal.permissions, required):
            raise PermissionDeniedError([p.value for p in required], mode="any")
        return principal

    return permission_checker


def require_all(*permissions: Permission):
    """Like require_any, but every one of ``permissions`` is needed"""
    required = list(permissions)

    async def permission_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not AuthorizationService.has_all(principal.permissions, required):
            raise PermissionDeniedError([p.value for p in required], mode="all")
        return principal

    return permission_checker


# Rate limiting
def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


async def api_rate_limit(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
    """Every request counts toward the general API limit"""
    limiter.hit("api", request)


async def auth_rate_limit(
    request: Request, limiter: RateLimiter = Depends(get_rate_limiter)
) -> AsyncIterator[None]:
    """
    Brute-force protection for credential endpoints.
    Only failed requests are counted; a client that already used up its
    allowance is rejected before the endpoint runs.
    """
    limiter.check("auth", request)
    try:
        yield
    except Exception:
        limiter.record("auth", request)
        raise


# Storage service dependencies
async def get_storage_service() -> IStorageService:
    """Storage service dependency"""
    global _storage_service
    if _storage_service is not None:
        return _storage_service

    from core.config import get_settings
    from services.storage.factory import StorageFactory

    _storage_service = StorageFactory.create_storage_service(get_settings())
    return _storage_service


# Read-only service dependencies
async def get_role_service(db: AsyncSession = Depends(get_db)) -> RoleService:
    return RoleService(db)


async def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


async def get_organization_service(db: AsyncSession = Depends(get_db)) -> OrganizationService:
    return OrganizationService(db)


async def get_lead_service(db: AsyncSession = Depends(get_db)) -> LeadService:
    return LeadService(db)


async def get_project_service(db: AsyncSession = Depends(get_db)) -> ProjectService:
    return ProjectService(db)


async def get_task_service(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db)


async def get_note_service(db: AsyncSession = Depends(get_db)) -> NoteService:
    return NoteService(db)


async def get_audit_service(db: AsyncSession = Depends(get_db)) -> AuditService:
    return AuditService(db)


# Transactional dependencies for write operations
async def get_auth_service_transactional(uow: UnitOfWork = Depends(get_unit_of_work)) -> AuthService:
    return AuthService(uow.session)


async def get_role_service_transactional(uow: UnitOfWork = Depends(get_unit_of_work)) -> RoleService:
    return RoleService(uow.session)


async def get_user_service_transactional(uow: UnitOfWork = Depends(get_unit_of_work)) -> UserService:
    return UserService(uow.session)


async def get_organization_service_transactional(
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> OrganizationService:
    return OrganizationService(uow.session)


async def get_lead_service_transactional(uow: UnitOfWork = Depends(get_unit_of_work)) -> LeadService:
    return LeadService(uow.session)


async def get_project_service_transactional(uow: UnitOfWork = Depends(get_unit_of_work)) -> ProjectService:
    return ProjectService(uow.session)


async def get_task_service_transactional(uow: UnitOfWork = Depends(get_unit_of_work)) -> TaskService:
    return TaskService(uow.session)


async def get_note_service_transactional(uow: UnitOfWork = Depends(get_unit_of_work)) -> NoteService:
    return NoteService(uow.session)


async def get_attachment_service(
    storage: IStorageService = Depends(get_storage_service),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> AttachmentService:
    """Attachment service; reads share the unit of work so downloads stay consistent"""
    return AttachmentService(storage, uow)
