"""Pytest configuration and fixtures for backend tests.

Database Handling:
- Uses TEST_DATABASE_URL when set (e.g. a PostgreSQL instance)
- Otherwise runs against an in-memory SQLite database via aiosqlite

Cache Handling:
- ``InMemoryCache`` implements the ``CacheStore`` interface with real TTL
  semantics so the auth components can be exercised without redis. The
  real ``CacheStore`` is covered separately against a mocked redis client.
"""

import os
import time
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["JWT_SECRET"] = "test-access-secret-0123456789abcdefghij"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-0123456789abcdefghij"
# Set high general rate limit for tests to prevent 429 errors
os.environ["RATE_LIMIT_MAX_REQUESTS"] = "10000"

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


# --- Cache Double ---


class InMemoryCache:
    """Dict-backed stand-in for ``CacheStore``.

    Set ``fail = True`` to make every operation raise a redis connection
    error, simulating an unreachable cache.
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._expiry: dict[str, float] = {}
        self.fail = False
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("cache unavailable")

    def _purge(self, key: str) -> None:
        expires = self._expiry.get(key)
        if expires is not None and expires <= time.monotonic():
            self._values.pop(key, None)
            self._expiry.pop(key, None)

    def _expire(self, key: str, ttl: int | None) -> None:
        if ttl is None:
            self._expiry.pop(key, None)
        else:
            self._expiry[key] = time.monotonic() + ttl

    async def get(self, key: str) -> str | None:
        self._check()
        self._purge(key)
        value = self._values.get(key)
        return None if value is None else str(value)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self._check()
        self._values[key] = value
        self._expire(key, ttl)

    async def delete(self, key: str) -> int:
        self._check()
        self._purge(key)
        self._expiry.pop(key, None)
        return 1 if self._values.pop(key, None) is not None else 0

    async def exists(self, key: str) -> bool:
        self._check()
        self._purge(key)
        return key in self._values

    async def ttl(self, key: str) -> int:
        self._check()
        self._purge(key)
        if key not in self._values:
            return -2
        expires = self._expiry.get(key)
        if expires is None:
            return -1
        return int(round(expires - time.monotonic()))

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        self._check()
        self._purge(key)
        if self._values.get(key) == expected:
            del self._values[key]
            self._expiry.pop(key, None)
            return True
        return False

    async def get_and_delete(self, key: str) -> str | None:
        self._check()
        self._purge(key)
        self._expiry.pop(key, None)
        return self._values.pop(key, None)

    async def increment(self, key: str, ttl: int) -> tuple[int, int]:
        self._check()
        self._purge(key)
        count = int(self._values.get(key, 0)) + 1
        self._values[key] = count
        if count == 1:
            self._expire(key, ttl)
        remaining = self._expiry.get(key, time.monotonic()) - time.monotonic()
        return count, int(remaining * 1000)

    async def push_capped(self, key: str, value: str, max_length: int, ttl: int) -> None:
        self._check()
        self._purge(key)
        items = [value, *self._values.get(key, [])]
        self._values[key] = items[:max_length]
        self._expire(key, ttl)

    async def list_range(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        self._check()
        self._purge(key)
        items = self._values.get(key, [])
        return list(items[start:] if end == -1 else items[start : end + 1])

    async def ping(self) -> bool:
        return not self.fail

    async def close(self) -> None:
        self.closed = True


# --- Settings / Infrastructure Fixtures ---


@pytest.fixture
def test_settings():
    """Settings for the test environment."""
    from scoopauth.core.config import Settings

    return Settings(
        environment="test",
        database_url=TEST_DATABASE_URL,
        jwt_secret=os.environ["JWT_SECRET"],
        jwt_refresh_secret=os.environ["JWT_REFRESH_SECRET"],
        rate_limit_max_requests=10000,
        sms_provider="console",
    )


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a database engine with a fresh schema for each test."""
    from scoopauth.core.database import Base
    from scoopauth.models import RefreshToken, User  # noqa: F401

    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        engine = create_async_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    from scoopauth.core.database import create_session_maker

    return create_session_maker(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def sms_gateway():
    from scoopauth.services.sms import ConsoleSmsGateway

    return ConsoleSmsGateway()


# --- Application Fixtures ---


@pytest.fixture
def app(test_settings, cache, db_engine, session_maker, sms_gateway):
    """Application wired to the test database, cache double and console SMS.

    The lifespan does not run under ASGITransport, so the components it
    would create are installed on ``app.state`` here for every test.
    """
    from scoopauth.core.lifespan import install_components
    from scoopauth.main import app as application

    application.state.engine = db_engine
    application.state.session_maker = session_maker
    install_components(application, test_settings, cache)
    application.state.sms_gateway = sms_gateway
    return application


@pytest_asyncio.fixture(scope="function")
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for the application."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# --- Test Factories ---


@pytest.fixture
def user_factory(db_session):
    """Factory for creating test User objects."""
    from scoopauth.models.user import User

    counter = {"n": 0}

    async def _create_user(
        phone: str | None = None,
        name: str = "Test User",
        username: str | None = None,
        **kwargs,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            phone=phone or f"+1555000{n:04d}",
            name=name,
            username=username or f"testuser{n}",
            phone_verified=kwargs.pop("phone_verified", True),
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def token_factory(db_session, test_settings):
    """Issue a ledgered token pair for a user."""
    from scoopauth.services.token_ledger import TokenLedger

    async def _issue(user):
        return await TokenLedger(db_session, test_settings).issue(user.id)

    return _issue


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
