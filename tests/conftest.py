"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite keeps the suite self-contained; no
  Postgres instance is needed in CI.
- StaticPool makes every async task share the one in-memory connection
  (an in-memory SQLite database is connection-scoped).
- The app's get_db dependency is overridden so every request uses the
  test session factory.
- All tables are created before each test and dropped after.
- Redis is disabled by setting cache._redis = None; the CacheManager
  treats that as "no cache" so the real service code paths still run.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from conduit.database import Base, get_db, run_after_commit
from conduit.main import app
from conduit.cache import cache
from conduit.middleware import install_query_counter
from conduit.models import User
from conduit.security import hash_password

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: production get_db -> test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            session.info.pop("after_commit", None)
            await session.rollback()
            raise
        await run_after_commit(session)


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for tests that call services directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    An httpx.AsyncClient wired to the FastAPI app via ASGITransport, with
    the Redis cache disabled.
    """
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register(async_client: AsyncClient):
    """
    Factory fixture: ``await register("alice")`` creates the user through
    the API and returns ``(user_json, auth_headers)``.
    """

    async def _register(username: str, password: str = "password123"):
        resp = await async_client.post("/api/users", json={"user": {
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
        }})
        assert resp.status_code == 201, resp.text
        user = resp.json()["user"]
        return user, {"Authorization": f"Token {user['token']}"}

    return _register


@pytest.fixture
def create_article(async_client: AsyncClient):
    """Factory fixture: create an article as the user behind *headers*."""

    async def _create(headers: dict, title: str, tags: list[str] | None = None, **fields):
        payload = {
            "title": title,
            "description": fields.pop("description", f"About {title}"),
            "body": fields.pop("body", f"Body of {title}"),
            "tagList": tags or [],
        }
        resp = await async_client.post("/api/articles", json={"article": payload}, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["article"]

    return _create


async def make_user(db: AsyncSession, username: str = "svcuser") -> User:
    """Insert a user row directly (service-level tests)."""
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password("password123"),
    )
    db.add(user)
    await db.flush()
    return user


@pytest.fixture
def user_factory(db_session: AsyncSession):
    async def _make(username: str = "svcuser") -> User:
        return await make_user(db_session, username)

    return _make
