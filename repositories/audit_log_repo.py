from datetime import datetime

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.audit_log import AuditLog
from repositories.base import BaseRepository, Page


class AuditLogRepository(BaseRepository[AuditLog]):
    """Append-only access to the audit trail (no update or delete)"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AuditLog)

    async def append(self, entry: AuditLog) -> AuditLog:
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def update(self, obj: AuditLog) -> AuditLog:
        raise TypeError("Audit log entries are immutable")

    async def delete(self, obj: AuditLog) -> None:
        raise TypeError("Audit log entries are immutable")

    async def list_entries(
        self,
        organization_id: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        user_id: str | None = None,
        action: str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Page[AuditLog]:
        query: Select = select(AuditLog).where(AuditLog.organization_id == organization_id)

        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.where(AuditLog.entity_id == entity_id)
        if user_id:
            query = query.where(AuditLog.user_id == user_id)
        if action:
            query = query.where(AuditLog.action == action)
        if created_from:
            query = query.where(AuditLog.created_at >= created_from)
        if created_to:
            query = query.where(AuditLog.created_at <= created_to)

        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        return await self.paginate(query, page, page_size)
