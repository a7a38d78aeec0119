from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from core.config import get_settings
from core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine; pool sizing only applies to server databases"""
    options: dict[str, Any] = {"echo": echo}
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(
            pool_pre_ping=True,
            pool_size=20,
            max_overflow=30,
            pool_recycle=3600,
        )
    return create_async_engine(database_url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url, echo=settings.database_echo)

AsyncSessionLocal = build_session_factory(engine)

Base = declarative_base()

Compensation = Callable[[], Awaitable[Any]]


class UnitOfWork:
    """
    Explicit transaction boundary for one top-level operation.

    Services receive the unit of work (or its session) and never commit
    themselves. The owner of the unit calls ``commit`` exactly once; any
    failure leads to ``rollback``, which also runs the registered
    compensations for side effects the database cannot undo (files written
    to disk). Post-commit hooks run only after a successful commit.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._compensations: list[Compensation] = []
        self._after_commit: list[Compensation] = []

    def add_compensation(self, action: Compensation) -> None:
        """Register an undo step to run if this unit rolls back"""
        self._compensations.append(action)

    def add_after_commit(self, action: Compensation) -> None:
        """Register a step that must only happen once the commit succeeded"""
        self._after_commit.append(action)

    async def commit(self) -> None:
        await self.session.commit()
        self._compensations.clear()
        hooks, self._after_commit = self._after_commit, []
        for hook in hooks:
            try:
                await hook()
            except Exception:
                # The transaction is durable at this point, only log
                logger.exception("Post-commit hook failed")

    async def rollback(self) -> None:
        self._after_commit.clear()
        try:
            await self.session.rollback()
        finally:
            compensations, self._compensations = self._compensations, []
            for action in reversed(compensations):
                try:
                    await action()
                except Exception:
                    logger.exception("Compensation step failed during rollback")


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Database session dependency for read operations.
    Does not commit - read-only operations don't need commits.
    Write operations should use get_unit_of_work().
    """
    async with AsyncSessionLocal() as session:
        yield session


async def get_unit_of_work() -> AsyncIterator[UnitOfWork]:
    """
    Unit of work dependency for write operations.

    Commits once after the endpoint returns and rolls back (running
    compensations) if the endpoint or the commit raises.
    Use this for POST, PUT, PATCH, DELETE endpoints.
    """
    async with AsyncSessionLocal() as session:
        uow = UnitOfWork(session)
        try:
            yield uow
            await uow.commit()
        except Exception:
            await uow.rollback()
            raise
