"""Shared test fixtures for Logtree Cloud tests.

Uses SQLite + aiosqlite for a fast, self-contained test database.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from logtree_cloud.config import settings
from logtree_cloud.database import create_engine
from logtree_cloud.logs import create_log
from logtree_cloud.models.api_key import ApiKey
from logtree_cloud.models.base import Base
from logtree_cloud.models.folder import Folder
from logtree_cloud.models.log import Log
from logtree_cloud.models.organization import Organization
from logtree_cloud.models.user import User
from logtree_cloud.folders import get_or_create_leaf_folder_id

# Import all models so Base.metadata has them
import logtree_cloud.models  # noqa: F401


# ---------------------------------------------------------------------------
# Test database engine (SQLite in-memory via aiosqlite)
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_engine(TEST_DATABASE_URL)
TestSessionLocal = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


@pytest_asyncio.fixture
async def db_session():
    """Create tables and yield a fresh async session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Tenants
# ---------------------------------------------------------------------------

async def make_org(
    db: AsyncSession,
    slug: str = "test-org",
    **overrides,
) -> Organization:
    values = {
        "id": uuid.uuid4(),
        "name": slug.replace("-", " ").title(),
        "slug": slug,
        "created_at": datetime.now(timezone.utc),
    }
    values.update(overrides)
    org = Organization(**values)
    db.add(org)
    await db.flush()
    return org


async def make_user(
    db: AsyncSession,
    org: Organization,
    email: str = "owner@example.com",
    **overrides,
) -> User:
    values = {
        "id": uuid.uuid4(),
        "organization_id": org.id,
        "email": email,
        "is_admin": True,
        "created_at": datetime.now(timezone.utc),
    }
    values.update(overrides)
    user = User(**values)
    db.add(user)
    await db.flush()
    return user


async def make_folder(db: AsyncSession, org: Organization, full_path: str) -> Folder:
    folder_id = await get_or_create_leaf_folder_id(db, org.id, full_path)
    return await db.get(Folder, folder_id)


async def make_log(
    db: AsyncSession,
    folder: Folder,
    created_at: datetime,
    content: str = "hello",
    **kwargs,
) -> Log:
    return await create_log(
        db,
        folder.organization_id,
        folder.id,
        content,
        now=created_at,
        **kwargs,
    )


@pytest_asyncio.fixture
async def test_org(db_session: AsyncSession) -> Organization:
    """Create and return a test organization."""
    return await make_org(db_session)


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession, test_org: Organization) -> User:
    """Create and return an admin user of the test organization."""
    return await make_user(db_session, test_org, phone_number="+15555550100")


@pytest_asyncio.fixture
async def test_api_key(db_session: AsyncSession, test_org: Organization) -> str:
    """Create a test API key and return the raw key string."""
    raw_key = "lt_test_key_abc123"
    api_key = ApiKey(
        id=uuid.uuid4(),
        organization_id=test_org.id,
        key_hash=ApiKey.hash_key(raw_key, settings.api_key_salt),
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db_session.add(api_key)
    await db_session.flush()
    return raw_key


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class RecordingNotifier:
    """Notifier that records every message instead of sending it."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.emails: list[tuple[str, str, str]] = []
        self.sms: list[tuple[str, str]] = []

    async def send_email(self, to: str, subject: str, text: str) -> bool:
        self.emails.append((to, subject, text))
        return self.succeed

    async def send_sms(self, to: str, body: str) -> bool:
        self.sms.append((to, body))
        return self.succeed


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# ---------------------------------------------------------------------------
# Override FastAPI dependencies for tests
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    test_org: Organization,
    test_api_key: str,
) -> AsyncClient:
    """Create an httpx AsyncClient wired to the FastAPI app with test DB overrides."""
    from logtree_cloud.database import get_db
    from logtree_cloud.main import app

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()
