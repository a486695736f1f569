import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from clinica.api.deps import get_current_user
from clinica.core.notifications import NotificationCenter
from clinica.db.session import get_session
from clinica.main import app
from clinica.schemas.auth import UserInfo

# Setup in-memory database for tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FakeSessionCache:
    """Stands in for RedisClient; stores sessions in a dict."""

    def __init__(self):
        self.sessions = {}
        self.expirations = {}

    async def set_session(self, token, value, expire):
        self.sessions[token] = value
        self.expirations[token] = expire

    async def get_session(self, token):
        return self.sessions.get(token)

    async def delete_session(self, token):
        self.sessions.pop(token, None)

    async def ping(self):
        return True

    async def close(self):
        pass


@pytest.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache():
    return FakeSessionCache()


@pytest.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_current_user] = lambda: UserInfo(id="user-1", email="admin@clinica.com")
    # The lifespan does not run under ASGITransport
    app.state.notifications = NotificationCenter()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
