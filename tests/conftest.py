"""Test configuration and fixtures."""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.hierarchy import OrgPath
from app.core.permissions import Role
from app.schemas.access_control import HierarchyNode, Membership, NodeType, TargetType
from app.services.hierarchy import HierarchyIndex
from main import app

# In-memory SQLite shared across connections of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
LAST_YEAR = NOW - timedelta(days=365)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for tests."""
    session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(test_engine) -> AsyncGenerator[AsyncClient, None]:
    """Get async HTTP client."""
    session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def hierarchy() -> HierarchyIndex:
    """
    district_1
    ├── school_A
    │   ├── class_X
    │   └── class_Y
    └── school_B
        └── class_Z
    district_10
    group_1 (flat)
    """
    d1 = OrgPath(("district_1",))
    d10 = OrgPath(("district_10",))
    school_a = d1.child("school_A")
    school_b = d1.child("school_B")
    return HierarchyIndex(
        [
            HierarchyNode(id="district_1", node_type=NodeType.DISTRICT, path=d1),
            HierarchyNode(id="district_10", node_type=NodeType.DISTRICT, path=d10),
            HierarchyNode(id="school_A", node_type=NodeType.SCHOOL, parent_id="district_1", path=school_a),
            HierarchyNode(id="school_B", node_type=NodeType.SCHOOL, parent_id="district_1", path=school_b),
            HierarchyNode(
                id="class_X", node_type=NodeType.CLASS, parent_id="school_A", path=school_a.child("class_X")
            ),
            HierarchyNode(
                id="class_Y", node_type=NodeType.CLASS, parent_id="school_A", path=school_a.child("class_Y")
            ),
            HierarchyNode(
                id="class_Z", node_type=NodeType.CLASS, parent_id="school_B", path=school_b.child("class_Z")
            ),
            HierarchyNode(id="group_1", node_type=NodeType.GROUP),
        ]
    )


def make_membership(
    node_id: str,
    role: Role,
    user_id: str = "user-1",
    start: datetime = LAST_YEAR,
    end: datetime | None = None,
    target_type: TargetType = TargetType.ORG,
) -> Membership:
    """Build a membership with sensible defaults."""
    return Membership(
        user_id=user_id,
        node_id=node_id,
        role=role,
        enrollment_start=start,
        enrollment_end=end,
        target_type=target_type,
    )
