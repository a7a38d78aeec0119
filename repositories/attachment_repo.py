from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.attachment import Attachment
from repositories.base import LIKE_ESCAPE, BaseRepository, Page, contains_pattern


class AttachmentRepository(BaseRepository[Attachment]):
    """Repository for attachment metadata"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Attachment)

    async def list_attachments(
        self,
        organization_id: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        uploaded_by: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Attachment]:
        query: Select = select(Attachment).where(Attachment.organization_id == organization_id)

        if entity_type:
            query = query.where(Attachment.entity_type == entity_type)
        if entity_id:
            query = query.where(Attachment.entity_id == entity_id)
        if uploaded_by:
            query = query.where(Attachment.uploaded_by == uploaded_by)
        if search:
            query = query.where(
                func.lower(Attachment.filename).like(contains_pattern(search), escape=LIKE_ESCAPE)
            )

        query = query.order_by(Attachment.created_at.desc(), Attachment.id)
        return await self.paginate(query, page, page_size)

    async def count_in_org(self, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Attachment)
            .where(Attachment.organization_id == organization_id)
        )
        return result.scalar_one()
