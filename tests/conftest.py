"""Shared fixtures: settings, a per-test SQLite database and seeded users."""

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from integrity.config import reset_settings
from integrity.db.database import Base
from integrity.db.models import User

TEST_IP_SECRET = "test-ip-hash-secret"
TEST_JWT_SECRET = "test-jwt-secret-key-0123456789abcdef"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Pin configuration for every test."""
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("IP_HASH_SECRET", TEST_IP_SECRET)
    monkeypatch.setenv("JWT_SECRET_KEY", TEST_JWT_SECRET)
    monkeypatch.setenv("MULTI_ACCOUNT_ALERT_THRESHOLD", "70")
    monkeypatch.setenv("MAX_CORRELATION_CANDIDATES", "10")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory bound to a fresh SQLite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'integrity.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A session on the test database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """Factory that inserts a user and returns its ID."""

    async def _make_user(user_id: str, username: str | None = None) -> str:
        async with session_factory() as session:
            session.add(
                User(
                    id=user_id,
                    username=username or user_id,
                    email=f"{user_id}@example.com",
                )
            )
            await session.commit()
        return user_id

    return _make_user
