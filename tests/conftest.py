"""Test configuration and fixtures.

Integration tests run the production models on an in-memory SQLite
database; JSONB columns are rendered as TEXT there.
"""

from collections.abc import AsyncGenerator, Callable
from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles

from gitaura.api.schemas.contributions import ContributionDay, ContributionSeries


@compiles(JSONB, "sqlite")
def _compile_jsonb_as_text(type_, compiler, **kw):
    return "TEXT"


def pytest_configure(config):
    """Register integration test marker."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring database"
    )


def make_days(start: date, counts: list[int]) -> list[ContributionDay]:
    """Consecutive contribution days starting at ``start``."""
    return [
        ContributionDay(date=start + timedelta(days=i), contribution_count=count)
        for i, count in enumerate(counts)
    ]


def make_series(days: list[ContributionDay]) -> ContributionSeries:
    return ContributionSeries(
        total_contributions=sum(d.contribution_count for d in days),
        days=days,
    )


@pytest.fixture(scope="function")
async def session_maker() -> AsyncGenerator:
    """Session factory bound to a fresh in-memory database.

    Every session shares the single underlying connection, so a second
    session can stand in for a concurrent writer.
    """
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool

    from gitaura.db.models import Base

    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator:
    """Create a fresh database session for each integration test."""
    async with session_maker() as session:
        yield session


@pytest.fixture(scope="function")
def make_user(db_session) -> Callable:
    """Factory for persisted users."""
    from gitaura.db.models import GitHubUser

    async def _make_user(username: str, **fields) -> GitHubUser:
        user = GitHubUser(username=username, display_name=username.title(), **fields)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture(scope="function")
def github() -> AsyncMock:
    """GitHub collaborator that reports no profile unless told otherwise."""
    from gitaura.services.github_service import GitHubService

    mock = AsyncMock(spec=GitHubService)
    mock.get_user_profile.return_value = None
    return mock


@pytest.fixture(scope="function")
async def client(db_session, github) -> AsyncGenerator:
    """Create a test client with overridden database and GitHub dependencies."""
    from httpx import ASGITransport, AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from gitaura.api.app import create_app
    from gitaura.api.routes.aura import get_github_service
    from gitaura.db import get_db

    app = create_app()

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_github_service] = lambda: github

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
