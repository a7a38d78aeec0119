import math
from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import object_session

from core.database import Base
from core.exceptions import ConflictError, ValidationError
from core.logging import get_logger

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger(__name__)

LIKE_ESCAPE = "\\"


def contains_pattern(search: str) -> str:
    """
    Case-folded LIKE pattern matching ``search`` as a literal substring.
    Use with ``.like(pattern, escape=LIKE_ESCAPE)``.
    """
    escaped = (
        search.lower()
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )
    return f"%{escaped}%"


def is_unique_violation(error: IntegrityError) -> bool:
    """True for unique/primary key violations (asyncpg SQLSTATE 23505 or SQLite's message)"""
    if "23505" in (getattr(error.orig, "sqlstate", None), getattr(error.orig, "pgcode", None)):
        return True
    return "unique constraint" in str(error.orig).lower()


class Page(Generic[ModelType]):
    """One page of results plus the totals needed for pagination metadata"""

    def __init__(self, items: list[Any], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def pagination(self) -> dict[str, int]:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "total_pages": self.total_pages,
        }


class BaseRepository(ABC, Generic[ModelType]):
    """
    Base repository implementing common CRUD operations.

    Repositories only flush; committing is the unit of work's job.
    Unique-constraint violations surface as ConflictError and any other
    integrity violation as ValidationError, so raw storage exceptions never
    leave the data layer.
    """

    conflict_message = "Resource already exists"

    def __init__(self, db: AsyncSession, model: type[ModelType]):
        self.db = db
        self.model = model

    async def get_by_id(self, id: str) -> ModelType | None:
        """Get a single record by ID (no tenant filter, internal use only)"""
        model: Any = self.model
        result = await self.db.execute(select(self.model).where(model.id == id))
        return result.scalar_one_or_none()

    async def get_by_id_in_org(self, id: str, organization_id: str) -> ModelType | None:
        """Get a record by ID, scoped to an organization"""
        model: Any = self.model
        result = await self.db.execute(
            select(self.model).where(model.id == id, model.organization_id == organization_id)
        )
        return result.scalar_one_or_none()

    async def create(self, obj: ModelType) -> ModelType:
        self.db.add(obj)
        await self._flush()
        await self.db.refresh(obj)
        return obj

    async def update(self, obj: ModelType) -> ModelType:
        """
        Flush pending changes on an existing record.

        Handles potentially detached objects by merging back to session.
        """
        if object_session(obj) is None:
            obj = await self.db.merge(obj)
        await self._flush()
        await self.db.refresh(obj)
        return obj

    async def delete(self, obj: ModelType) -> None:
        await self.db.delete(obj)
        await self.db.flush()

    async def paginate(self, query: Select, page: int, page_size: int) -> Page[ModelType]:
        """Execute ``query`` for one page and count the full result set"""
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await self.db.execute(count_query)).scalar_one()

        result = await self.db.execute(query.offset((page - 1) * page_size).limit(page_size))
        return Page(list(result.scalars().all()), total, page, page_size)

    async def _flush(self) -> None:
        """
        Raises:
            ConflictError: a unique constraint was violated
            ValidationError: any other constraint (not null, check, foreign key)
        """
        try:
            await self.db.flush()
        except IntegrityError as e:
            logger.info("Integrity violation on %s: %s", self.model.__name__, e.orig)
            if is_unique_violation(e):
                raise ConflictError(self.conflict_message) from e
            raise ValidationError(f"Invalid {self.model.__name__} data violates a constraint") from e
