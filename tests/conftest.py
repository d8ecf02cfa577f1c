"""
Shared fixtures for the engagement engine test suite.

Every test gets a fresh in-memory SQLite database (aiosqlite, one shared
connection) seeded with one recruiter, three candidates and three jobs.
Outbound notification dispatch is patched out so no broker is needed.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import talentpool.models  # noqa: F401
from talentpool.database import Base, get_db
from talentpool.models import Job, User

# Wednesday, noon UTC
NOW = datetime(2024, 6, 12, 12, 0, 0)


@dataclass
class Seed:
    admin: User
    alice: User
    bob: User
    carol: User
    backend_job: Job
    frontend_job: Job
    closed_job: Job


@pytest.fixture
def now():
    return NOW


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seed(db):
    admin = User(
        id="admin-1",
        name="Riley Recruiter",
        email="recruiter@example.com",
        role="admin",
        created_at=NOW - timedelta(days=400),
    )
    alice = User(
        id="cand-alice",
        name="Alice Archer",
        email="alice@example.com",
        role="candidate",
        bio="Backend developer who likes data pipelines",
        skills=["Python", "SQL", "AWS"],
        years_experience=5,
        location="London, UK",
        current_title="Software Engineer",
        current_company="Acme",
        available_for_opportunities=True,
        last_profile_update=NOW - timedelta(days=1),
        created_at=NOW - timedelta(days=10),
    )
    bob = User(
        id="cand-bob",
        name="Bob Baker",
        email="bob@example.com",
        role="candidate",
        bio="Frontend specialist",
        skills=["JavaScript", "React"],
        years_experience=2,
        location="Manchester, UK",
        current_title="Frontend Developer",
        current_company="Globex",
        available_for_opportunities=False,
        last_profile_update=NOW - timedelta(days=5),
        created_at=NOW - timedelta(days=60),
    )
    carol = User(
        id="cand-carol",
        name="Carol Chen",
        email="carol@example.com",
        role="candidate",
        skills=["Python", "Kubernetes"],
        years_experience=8,
        location="Remote",
        available_for_opportunities=True,
        last_profile_update=None,
        created_at=NOW - timedelta(days=3),
    )
    backend_job = Job(
        id="job-backend",
        title="Backend Engineer",
        slug="backend-engineer",
        department="Engineering",
        location="London",
        status="Active",
        required_skills=["python", "sql"],
        min_experience=3,
        max_experience=7,
        created_at=NOW - timedelta(days=2),
    )
    frontend_job = Job(
        id="job-frontend",
        title="Frontend Engineer",
        slug="frontend-engineer",
        department="Engineering",
        location="Manchester",
        status="Active",
        required_skills=["javascript", "react"],
        min_experience=1,
        max_experience=4,
        created_at=NOW - timedelta(days=5),
    )
    closed_job = Job(
        id="job-closed",
        title="Data Analyst",
        slug="data-analyst",
        department="Data",
        location="London",
        status="Closed",
        required_skills=["sql"],
        created_at=NOW - timedelta(days=30),
    )
    db.add_all([admin, alice, bob, carol, backend_job, frontend_job, closed_job])
    await db.commit()
    return Seed(admin, alice, bob, carol, backend_job, frontend_job, closed_job)


@pytest.fixture(autouse=True)
def dispatch():
    """Stand-in for the broker hand-off after commit."""
    mock = MagicMock(return_value=[])
    with patch("talentpool.services.invitations.dispatch_notifications", mock), \
            patch("talentpool.services.sourcing.dispatch_notifications", mock):
        yield mock


@pytest_asyncio.fixture
async def client(session_factory, seed):
    from talentpool.auth import COOKIE_NAME, create_session_token
    from talentpool.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    token = create_session_token(
        user_id=seed.admin.id,
        name=seed.admin.name,
        email=seed.admin.email,
        premium=True,
    )
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={COOKIE_NAME: token},
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def anon_client(session_factory, seed):
    from talentpool.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
