from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import LeadStatus, SortOrder
from models.lead import Lead
from repositories.base import LIKE_ESCAPE, BaseRepository, Page, contains_pattern

SORTABLE_FIELDS = {
    "title": Lead.title,
    "status": Lead.status,
    "created_at": Lead.created_at,
    "updated_at": Lead.updated_at,
}


class LeadRepository(BaseRepository[Lead]):
    """Repository for Lead operations; soft-deleted leads are never returned"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Lead)

    async def get_by_id_in_org(self, id: str, organization_id: str) -> Lead | None:
        result = await self.db.execute(
            select(Lead).where(
                Lead.id == id,
                Lead.organization_id == organization_id,
                Lead.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def list_leads(
        self,
        organization_id: str,
        *,
        owner_user_id: str | None = None,
        status: str | None = None,
        source: str | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Lead]:
        query: Select = select(Lead).where(
            Lead.organization_id == organization_id, Lead.deleted_at.is_(None)
        )

        if owner_user_id:
            query = query.where(Lead.owner_user_id == owner_user_id)
        if status:
            query = query.where(Lead.status == status)
        if source:
            query = query.where(Lead.source == source)
        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    func.lower(Lead.title).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Lead.company).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Lead.contact_name).like(pattern, escape=LIKE_ESCAPE),
                )
            )

        column = SORTABLE_FIELDS.get(sort_by, Lead.created_at)
        ordering = column.asc() if sort_order == SortOrder.ASC else column.desc()
        query = query.order_by(ordering, Lead.id)
        return await self.paginate(query, page, page_size)

    async def count_by_status(self, organization_id: str) -> dict[str, int]:
        result = await self.db.execute(
            select(Lead.status, func.count())
            .where(Lead.organization_id == organization_id, Lead.deleted_at.is_(None))
            .group_by(Lead.status)
        )
        counts = {status: 0 for status in LeadStatus.values()}
        counts.update({status: count for status, count in result.all()})
        return counts

    async def count_owned_by(self, user_id: str, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Lead)
            .where(
                Lead.owner_user_id == user_id,
                Lead.organization_id == organization_id,
                Lead.deleted_at.is_(None),
            )
        )
        return result.scalar_one()
