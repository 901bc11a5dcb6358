"""Test fixtures — a fresh in-memory database and app per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own aiosqlite in-memory engine (StaticPool keeps the
   single connection alive) with all tables created up front.
2. The app is built with create_app(session_factory=..., token_codec=...),
   so routes, the auth middleware, and the health check all share that DB.
3. The engine is disposed after the test — nothing leaks between tests.

Environment overrides are set before the app package is imported so the
module-level settings pick them up (cheap bcrypt, SQLite, no Redis).
"""

import os

os.environ.setdefault("STATION_MANAGER_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("STATION_MANAGER_BCRYPT_ROUNDS", "4")
os.environ.setdefault("STATION_MANAGER_REDIS_URL", "")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from station_manager.auth.jwt import TokenCodec  # noqa: E402
from station_manager.db.models import Base  # noqa: E402
from station_manager.main import create_app  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite://"
TEST_SECRET = "test-signing-key-0123456789abcdef0123456789abcdef"


@pytest_asyncio.fixture()
async def session_factory():
    """Per-test in-memory database with the full schema."""
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def token_codec():
    return TokenCodec(secret=TEST_SECRET)


@pytest.fixture()
def app(session_factory, token_codec):
    return create_app(session_factory=session_factory, token_codec=token_codec)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client running the real middleware stack against the test DB."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def register_and_login(client):
    """Helper: register a user, log in, return ``{token, refreshToken}``."""

    async def _register_and_login(username="alice", password="p1", name="A"):
        r = await client.post(
            "/api/authentication/register",
            json={"name": name, "username": username, "password": password},
        )
        assert r.status_code == 201, r.text
        r = await client.post(
            "/api/authentication/login",
            json={"username": username, "password": password},
        )
        assert r.status_code == 200, r.text
        return r.json()["data"]

    return _register_and_login


class FakeRedis:
    """In-memory stand-in for the few Redis commands the app uses."""

    def __init__(self):
        self.values: dict[str, int] = {}
        self.ttls: dict[str, int] = {}
        self.broken = False

    def _check(self):
        if self.broken:
            raise RedisConnectionError("redis down")

    async def incr(self, key):
        self._check()
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key, seconds):
        self._check()
        self.ttls[key] = seconds

    async def get(self, key):
        self._check()
        value = self.values.get(key)
        return None if value is None else str(value)

    async def delete(self, key):
        self._check()
        self.values.pop(key, None)


@pytest.fixture()
def fake_redis():
    return FakeRedis()
