from enum import Enum


class OrganizationStatus(str, Enum):
    """Organization status enumeration"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [status.value for status in cls]


class UserStatus(str, Enum):
    """User lifecycle: pending (invited) -> active -> inactive/suspended"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    SUSPENDED = "suspended"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [status.value for status in cls]


class TokenType(str, Enum):
    REFRESH = "refresh"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFY = "email_verify"

    @classmethod
    def values(cls) -> list[str]:
        return [token_type.value for token_type in cls]


class AuditAction(str, Enum):
    """Audit action enumeration"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"
    LOGIN = "login"
    LOGOUT = "logout"
    INVITE = "invite"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [action.value for action in cls]


class AuditEntityType(str, Enum):
    ORGANIZATION = "organization"
    USER = "user"
    ROLE = "role"
    LEAD = "lead"
    PROJECT = "project"
    TASK = "task"
    NOTE = "note"
    ATTACHMENT = "attachment"

    @classmethod
    def values(cls) -> list[str]:
        return [entity.value for entity in cls]


class AttachableEntityType(str, Enum):
    """Entities that accept file attachments"""
    LEAD = "lead"
    PROJECT = "project"
    TASK = "task"

    @classmethod
    def values(cls) -> list[str]:
        return [entity.value for entity in cls]


class LeadStatus(str, Enum):
    NEW = "new"
    QUALIFIED = "qualified"
    WON = "won"
    LOST = "lost"

    @classmethod
    def values(cls) -> list[str]:
        return [status.value for status in cls]


class LeadSource(str, Enum):
    REFERRAL = "referral"
    WEBSITE = "website"
    ADS = "ads"
    EVENT = "event"
    OTHER = "other"

    @classmethod
    def values(cls) -> list[str]:
        return [source.value for source in cls]


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"

    @classmethod
    def values(cls) -> list[str]:
        return [status.value for status in cls]


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def values(cls) -> list[str]:
        return [status.value for status in cls]


class TaskPriority(str, Enum):
    """Declared lowest to highest; sorting by priority follows this order"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def values(cls) -> list[str]:
        return [priority.value for priority in cls]


class NoteEntityType(str, Enum):
    """Entities that accept notes"""
    LEAD = "lead"
    PROJECT = "project"
    TASK = "task"

    @classmethod
    def values(cls) -> list[str]:
        return [entity.value for entity in cls]


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"
