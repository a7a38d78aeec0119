"""Shared test fixtures for pytest"""
import os
import tempfile

# Settings are read once at import time; configure them before the app loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("STORAGE_ROOT", tempfile.mkdtemp(prefix="crm-storage-"))

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from api.deps import get_storage_service  # noqa: E402
from core.database import Base, UnitOfWork, build_session_factory, get_db, get_unit_of_work  # noqa: E402
from main import app  # noqa: E402
from services.storage.local_storage import LocalStorageService  # noqa: E402
from tests.helpers import auth_headers_for, create_organization, create_user  # noqa: E402


@pytest.fixture
async def test_engine(tmp_path):
    """
    File-backed SQLite database per test.

    Every session gets its own connection, like the request-scoped sessions
    of the API, so committed state is really shared and rollbacks are real.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
async def test_db(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage_service(tmp_path):
    return LocalStorageService(storage_root=str(tmp_path / "storage"))


@pytest.fixture
async def client(session_factory, storage_service):
    """HTTP client for API testing"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_unit_of_work():
        async with session_factory() as session:
            uow = UnitOfWork(session)
            try:
                yield uow
                await uow.commit()
            except Exception:
                await uow.rollback()
                raise

    async def override_get_storage_service():
        return storage_service

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_unit_of_work] = override_get_unit_of_work
    app.dependency_overrides[get_storage_service] = override_get_storage_service
    app.state.rate_limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.rate_limiter.reset()


@pytest.fixture
async def organization_and_roles(test_db):
    return await create_organization(test_db)


@pytest.fixture
def test_organization(organization_and_roles):
    return organization_and_roles[0]


@pytest.fixture
def system_roles(organization_and_roles):
    """System roles of the test organization, by name"""
    return organization_and_roles[1]


@pytest.fixture
async def admin_user(test_db, test_organization, system_roles):
    """SuperAdmin of the test organization"""
    return await create_user(test_db, test_organization, [system_roles["SuperAdmin"]], "admin@acme.com", "Admin")


@pytest.fixture
async def agent_user(test_db, test_organization, system_roles):
    return await create_user(test_db, test_organization, [system_roles["Agent"]], "agent@acme.com", "Agent")


@pytest.fixture
async def other_organization(test_db):
    organization, _ = await create_organization(test_db, name="Globex", domain="globex.com")
    return organization


@pytest.fixture
def auth_headers(admin_user):
    """Generate auth headers with JWT token"""
    return auth_headers_for(admin_user)
