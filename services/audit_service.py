"""
Audit recorder.

Entries are appended to the caller's session, so they commit (or roll back)
together with the mutation they describe. A failed append is logged with
full context and re-raised: the unit of work then aborts rather than
letting the mutation succeed without a trace.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.context import get_actor_context
from core.enums import AuditAction, AuditEntityType
from core.logging import get_logger
from models.audit_log import AuditLog
from repositories.audit_log_repo import AuditLogRepository
from repositories.base import Page

logger = get_logger(__name__)

SENSITIVE_FIELDS = {
    "password",
    "password_hash",
    "hashed_password",
    "current_password",
    "new_password",
    "secret",
    "token",
    "token_hash",
    "refresh_token",
    "access_token",
}


def sanitize_snapshot(data: dict[str, Any] | None) -> dict[str, Any] | None:
    """
    Make an entity snapshot safe and JSON-friendly.

    Removes credentials and converts datetimes and enums to strings.
    """
    if data is None:
        return None

    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in SENSITIVE_FIELDS:
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, (datetime, date)):
            sanitized[key] = value.isoformat()
        elif isinstance(value, Enum):
            sanitized[key] = value.value
        elif isinstance(value, dict):
            sanitized[key] = sanitize_snapshot(value)
        else:
            sanitized[key] = value
    return sanitized


class AuditService:
    """Appends and queries audit entries"""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.repo = AuditLogRepository(db)

    async def record(
        self,
        *,
        organization_id: str,
        user_id: str | None,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_id: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """
        Append one audit entry in the caller's transaction.

        IP and user agent default to the current request's actor context.
        """
        ctx = get_actor_context()
        entry = AuditLog(
            organization_id=organization_id,
            user_id=user_id,
            action=action.value,
            entity_type=entity_type.value,
            entity_id=entity_id,
            before=sanitize_snapshot(before),
            after=sanitize_snapshot(after),
            extra=sanitize_snapshot(metadata),
            ip=ip if ip is not None else ctx.ip_address,
            user_agent=user_agent if user_agent is not None else ctx.user_agent,
        )

        try:
            return await self.repo.append(entry)
        except SQLAlchemyError:
            logger.exception(
                "Failed to record audit entry %s %s/%s in organization %s",
                action.value,
                entity_type.value,
                entity_id,
                organization_id,
            )
            raise

    async def list_entries(self, organization_id: str, **filters: Any) -> Page[AuditLog]:
        return await self.repo.list_entries(organization_id, **filters)
