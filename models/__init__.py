from models.attachment import Attachment
from models.audit_log import AuditLog
from models.lead import Lead

# Mixins for model composition
from models.mixins import (
    CreatedAtMixin,
    CuidMixin,
    MultiTenantModel,
    OrganizationMixin,
    SoftDeleteMixin,
    TimestampMixin,
)
from models.note import Note
from models.organization import Organization
from models.project import Project, ProjectMember
from models.role import Role, UserRole
from models.task import Task
from models.token import Token
from models.user import User

__all__ = [
    # Models
    "Organization",
    "User",
    "Role",
    "UserRole",
    "Token",
    "AuditLog",
    "Lead",
    "Project",
    "ProjectMember",
    "Task",
    "Note",
    "Attachment",
    # Mixins
    "CuidMixin",
    "OrganizationMixin",
    "CreatedAtMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "MultiTenantModel",
]
