"""Factories shared by service and API tests"""
from core.auth import create_access_token
from models.organization import Organization
from models.role import Role
from models.user import User
from repositories.user_repo import UserRepository
from services.authz_service import AuthorizationService, Principal
from services.organization_initialization_service import OrganizationInitializationService

TEST_PASSWORD = "testpass123"


async def create_organization(db, name: str = "Acme", domain: str = "acme.com"):
    """Organization with its system roles; returns (organization, roles by name)"""
    organization = Organization(name=name, domain=domain)
    db.add(organization)
    await db.flush()
    roles = await OrganizationInitializationService(db).create_system_roles(organization.id)
    await db.commit()
    return organization, roles


async def create_user(db, organization, roles: list[Role], email: str, name: str = "Test User") -> User:
    """Active user holding ``roles`` (in order)"""
    repo = UserRepository(db)
    user = await repo.create_user(organization.id, name, email, TEST_PASSWORD)
    await repo.replace_roles(user, roles)
    await db.commit()
    return user


async def create_custom_role(db, organization, name: str, permissions: list[str]) -> Role:
    role = Role(organization_id=organization.id, name=name, permissions=permissions, is_system=False)
    db.add(role)
    await db.commit()
    return role


async def create_user_with_permissions(db, organization, permissions: list[str], email: str) -> User:
    """Active user whose only role is a custom role holding exactly ``permissions``"""
    role = await create_custom_role(db, organization, f"Custom {email}", permissions)
    return await create_user(db, organization, [role], email)


async def principal_for(db, user: User) -> Principal:
    permissions = await AuthorizationService(db).resolve_permissions(user)
    return Principal(user=user, permissions=permissions)


def auth_headers_for(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.organization_id)
    return {"Authorization": f"Bearer {token}"}
