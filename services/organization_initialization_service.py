"""
Organization initialization service for setting up RBAC defaults.

Called when a new organization registers, inside the same unit of work, to:
- Create the system roles
- Assign the SuperAdmin role to the founding user
"""
from typing import TypedDict

from sqlalchemy.ext.asyncio import AsyncSession

from core.permissions import Permission, PermissionCategory
from models.role import Role, UserRole


class RoleData(TypedDict):
    """Type definition for role configuration"""

    description: str
    permissions: list[Permission]


SUPER_ADMIN_ROLE = "SuperAdmin"

_WORK_CATEGORIES = {
    PermissionCategory.LEAD,
    PermissionCategory.PROJECT,
    PermissionCategory.TASK,
    PermissionCategory.NOTE,
}
_WORK_ALL = [p for p in Permission if p.category in _WORK_CATEGORIES]
_FILE_ALL = [p for p in Permission if p.category is PermissionCategory.FILE]

# System roles; immutable once created
DEFAULT_ROLES: dict[str, RoleData] = {
    SUPER_ADMIN_ROLE: {
        "description": "Full access to every organization feature",
        "permissions": list(Permission),
    },
    "Admin": {
        "description": "Administers users, roles and data; cannot change organization settings",
        "permissions": [p for p in Permission if p is not Permission.ORG_MANAGE],
    },
    "Manager": {
        "description": "Manages all leads, projects, tasks, notes and files and can review activity",
        "permissions": [
            *_WORK_ALL,
            Permission.USER_VIEW,
            *_FILE_ALL,
            Permission.ORG_VIEW,
            Permission.AUDIT_VIEW,
            Permission.PERMISSION_VIEW,
        ],
    },
    "Agent": {
        "description": "Works on their own leads and tasks, and on projects they belong to",
        "permissions": [
            Permission.LEAD_CREATE,
            Permission.LEAD_VIEW_OWN,
            Permission.LEAD_EDIT_OWN,
            Permission.LEAD_DELETE_OWN,
            Permission.PROJECT_VIEW_OWN,
            Permission.TASK_CREATE,
            Permission.TASK_VIEW_OWN,
            Permission.TASK_EDIT_OWN,
            Permission.NOTE_CREATE,
            Permission.NOTE_VIEW,
            Permission.NOTE_EDIT_OWN,
            Permission.NOTE_DELETE_OWN,
            Permission.FILE_UPLOAD,
            Permission.FILE_VIEW,
            Permission.FILE_DOWNLOAD,
            Permission.ORG_VIEW,
        ],
    },
    "Auditor": {
        "description": "Read-only access for compliance reviews",
        "permissions": [
            Permission.LEAD_VIEW_ALL,
            Permission.PROJECT_VIEW_ALL,
            Permission.TASK_VIEW_ALL,
            Permission.NOTE_VIEW,
            Permission.USER_VIEW,
            Permission.FILE_VIEW,
            Permission.FILE_DOWNLOAD,
            Permission.ORG_VIEW,
            Permission.AUDIT_VIEW,
            Permission.PERMISSION_VIEW,
        ],
    },
}


class OrganizationInitializationService:
    """Service for initializing new organizations with default RBAC setup"""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_system_roles(self, organization_id: str) -> dict[str, Role]:
        """Create every system role for the organization; returns them by name"""
        roles = {
            name: Role(
                organization_id=organization_id,
                name=name,
                description=data["description"],
                permissions=[permission.value for permission in data["permissions"]],
                is_system=True,
            )
            for name, data in DEFAULT_ROLES.items()
        }
        self.db.add_all(roles.values())
        await self.db.flush()
        return roles

    async def assign_super_admin(self, organization_id: str, user_id: str, roles: dict[str, Role]) -> None:
        self.db.add(
            UserRole(
                organization_id=organization_id,
                user_id=user_id,
                role_id=roles[SUPER_ADMIN_ROLE].id,
                position=0,
            )
        )
        await self.db.flush()
