"""
Permission catalog.

Permissions are a closed set: roles reference them, nothing creates them at
runtime. Each value follows ``<category>.<action>[.<scope>]`` and every member
is tagged with its PermissionCategory when the enum class is built, so an
unknown category fails at import time rather than in a request.
"""

from collections.abc import Iterable
from enum import Enum

from core.exceptions import ValidationError


class PermissionCategory(str, Enum):
    LEAD = "lead"
    PROJECT = "project"
    TASK = "task"
    NOTE = "note"
    USER = "user"
    ROLE = "role"
    PERMISSION = "permission"
    FILE = "file"
    ORG = "org"
    AUDIT = "audit"


class Permission(str, Enum):
    category: PermissionCategory

    def __new__(cls, value: str) -> "Permission":
        member = str.__new__(cls, value)
        member._value_ = value
        member.category = PermissionCategory(value.split(".", 1)[0])
        return member

    # Leads
    LEAD_CREATE = "lead.create"
    LEAD_VIEW_ALL = "lead.view.all"
    LEAD_VIEW_OWN = "lead.view.own"
    LEAD_EDIT_ALL = "lead.edit.all"
    LEAD_EDIT_OWN = "lead.edit.own"
    LEAD_DELETE_ALL = "lead.delete.all"
    LEAD_DELETE_OWN = "lead.delete.own"
    LEAD_ASSIGN = "lead.assign"

    # Projects; "own" means managed by the caller (viewing also covers membership)
    PROJECT_CREATE = "project.create"
    PROJECT_VIEW_ALL = "project.view.all"
    PROJECT_VIEW_OWN = "project.view.own"
    PROJECT_EDIT_ALL = "project.edit.all"
    PROJECT_EDIT_OWN = "project.edit.own"
    PROJECT_DELETE_ALL = "project.delete.all"
    PROJECT_DELETE_OWN = "project.delete.own"

    # Tasks; "own" means assigned to or created by the caller
    TASK_CREATE = "task.create"
    TASK_VIEW_ALL = "task.view.all"
    TASK_VIEW_OWN = "task.view.own"
    TASK_EDIT_ALL = "task.edit.all"
    TASK_EDIT_OWN = "task.edit.own"
    TASK_DELETE_ALL = "task.delete.all"
    TASK_DELETE_OWN = "task.delete.own"

    # Notes; "own" means authored by the caller
    NOTE_CREATE = "note.create"
    NOTE_VIEW = "note.view"
    NOTE_EDIT_ALL = "note.edit.all"
    NOTE_EDIT_OWN = "note.edit.own"
    NOTE_DELETE_ALL = "note.delete.all"
    NOTE_DELETE_OWN = "note.delete.own"

    # Users
    USER_INVITE = "user.invite"
    USER_VIEW = "user.view"
    USER_UPDATE = "user.update"
    USER_DELETE = "user.delete"

    # Roles & permissions
    ROLE_MANAGE = "role.manage"
    PERMISSION_VIEW = "permission.view"

    # Files
    FILE_UPLOAD = "file.upload"
    FILE_VIEW = "file.view"
    FILE_DOWNLOAD = "file.download"
    FILE_DELETE = "file.delete"

    # Organization
    ORG_MANAGE = "org.manage"
    ORG_VIEW = "org.view"

    # Audit
    AUDIT_VIEW = "audit.view"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values in catalog order"""
        return [permission.value for permission in cls]

    @classmethod
    def grouped(cls) -> dict[str, list[str]]:
        """Catalog grouped by category, both in declaration order"""
        groups: dict[str, list[str]] = {category.value: [] for category in PermissionCategory}
        for permission in cls:
            groups[permission.category.value].append(permission.value)
        return groups

    @classmethod
    def parse_many(cls, raw: Iterable[str]) -> list["Permission"]:
        """
        Validate a client-supplied permission list.

        Raises:
            ValidationError: empty list, duplicates, or values outside the catalog
        """
        values = list(raw)
        if not values:
            raise ValidationError("At least one permission is required", field="permissions")

        unknown = [value for value in values if value not in cls._value2member_map_]
        if unknown:
            raise ValidationError(
                "Invalid permissions",
                field="permissions",
                details={"invalid": unknown},
            )

        if len(set(values)) != len(values):
            raise ValidationError("Duplicate permissions are not allowed", field="permissions")

        return [cls(value) for value in values]


ALL_PERMISSIONS: frozenset[Permission] = frozenset(Permission)
