"""
Shared fixtures for the bloglite suite.

- The database is in-memory SQLite through aiosqlite. Upserts compile to the
  SQLite ``ON CONFLICT`` form and ``FOR UPDATE SKIP LOCKED`` is dropped by
  the SQLite compiler, so repositories, dispatcher and projections run the
  same statements they run against Postgres.
- ``StaticPool`` pins one connection, since an in-memory database lives and
  dies with its connection. Every session sees the same data only after a
  commit, so tests commit before dispatching and read back in a new session.
- ``get_db`` and ``get_content_factory`` are overridden. ASGITransport skips
  the lifespan, so no background dispatcher runs; the ``dispatcher`` fixture
  is driven by hand.
- Tables are created before and dropped after every test.
- Redis is off (``cache._redis = None``), which makes every lookup a miss.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bloglite.cache import cache
from bloglite.config import settings
from bloglite.content import build_content_factory
from bloglite.content.render import LocalRenderer
from bloglite.database import Base, get_db
from bloglite.dependencies import get_content_factory
from bloglite.main import app
from bloglite.models import Category
from bloglite.outbox.dispatcher import OutboxDispatcher
from bloglite.outbox.registry import build_registry
from bloglite.projections.aggregate_delete import AggregateDeletePolicy
from bloglite.projections.readmodel import ReadModelProjector

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

renderer_test = LocalRenderer()
content_factory_test = build_content_factory(renderer_test)


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_content_factory] = lambda: content_factory_test


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_markdown(
    title: str = "Hello",
    summary: str = "A short summary",
    tags: str | None = "python",
    body: str = "Some *body* text.",
) -> str:
    lines = ["---", f"title: {title}", f"summary: {summary}"]
    if tags is not None:
        lines.append(f"tags: {tags}")
    lines += ["---", body]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_test


@pytest.fixture
def content_factory():
    return content_factory_test


@pytest_asyncio.fixture
async def categories() -> dict[str, str]:
    """Register the categories used across the suite."""
    data = {"tech": "Technology", "life": "Life", "private": "Private"}
    async with async_session_test() as session:
        session.add_all(Category(id=k, display_name=v) for k, v in data.items())
        await session.commit()
    return data


@pytest.fixture
def dispatcher() -> OutboxDispatcher:
    registry = build_registry(ReadModelProjector(renderer_test), AggregateDeletePolicy())
    return OutboxDispatcher(
        async_session_test,
        registry,
        batch_size=10,
        max_retries=3,
        interval=0.01,
        shutdown_timeout=1.0,
    )


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": settings.ADMIN_TOKEN}


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
