from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.organization import Organization
from repositories.base import BaseRepository


class OrganizationRepository(BaseRepository[Organization]):
    """Repository for Organization operations"""

    conflict_message = "Organization domain already exists"

    def __init__(self, db: AsyncSession):
        super().__init__(db, Organization)

    async def get_by_domain(self, domain: str) -> Organization | None:
        """Get organization by its unique domain (case-insensitive input)"""
        result = await self.db.execute(
            select(Organization).where(Organization.domain == domain.strip().lower())
        )
        return result.scalar_one_or_none()
