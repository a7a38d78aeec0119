from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.note import Note
from repositories.base import LIKE_ESCAPE, BaseRepository, Page, contains_pattern


class NoteRepository(BaseRepository[Note]):
    """Repository for Note operations; soft-deleted notes are never returned"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Note)

    async def get_by_id_in_org(self, id: str, organization_id: str) -> Note | None:
        result = await self.db.execute(
            select(Note).where(
                Note.id == id,
                Note.organization_id == organization_id,
                Note.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def list_notes(
        self,
        organization_id: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        author_user_id: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Note]:
        """Newest first"""
        query: Select = select(Note).where(
            Note.organization_id == organization_id, Note.deleted_at.is_(None)
        )

        if entity_type:
            query = query.where(Note.entity_type == entity_type)
        if entity_id:
            query = query.where(Note.entity_id == entity_id)
        if author_user_id:
            query = query.where(Note.author_user_id == author_user_id)
        if search:
            query = query.where(func.lower(Note.body).like(contains_pattern(search), escape=LIKE_ESCAPE))

        query = query.order_by(Note.created_at.desc(), Note.id)
        return await self.paginate(query, page, page_size)

    async def count_for_entity(self, organization_id: str, entity_type: str, entity_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Note)
            .where(
                Note.organization_id == organization_id,
                Note.entity_type == entity_type,
                Note.entity_id == entity_id,
                Note.deleted_at.is_(None),
            )
        )
        return result.scalar_one()
