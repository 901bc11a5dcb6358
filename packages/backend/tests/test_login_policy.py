"""Account lockout policy tests.

Learn: Redis is replaced by the in-memory ``fake_redis`` fixture, which
implements the four commands the policy uses (incr, expire, get, delete).
"""

import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from station_manager.auth.errors import AuthManagerFailure
from station_manager.auth.policy import AccountLockoutPolicy
from station_manager.auth.store import Principal
from station_manager.main import create_app


def _principal(username="alice"):
    return Principal(id=uuid.uuid4(), name="A", username=username, password_hash="x")


@pytest.mark.asyncio
async def test_permissive_without_redis():
    policy = AccountLockoutPolicy(redis_provider=lambda: None, max_failures=1)
    await policy.record_failure("alice")
    await policy.record_failure("alice")
    await policy.authenticate(_principal())


@pytest.mark.asyncio
async def test_locks_after_max_failures(fake_redis):
    policy = AccountLockoutPolicy(redis_provider=lambda: fake_redis, max_failures=3)
    for _ in range(3):
        await policy.record_failure("alice")

    with pytest.raises(AuthManagerFailure, match="locked"):
        await policy.authenticate(_principal())


@pytest.mark.asyncio
async def test_failure_counter_gets_ttl_once(fake_redis):
    policy = AccountLockoutPolicy(redis_provider=lambda: fake_redis, window_seconds=60)
    await policy.record_failure("alice")
    await policy.record_failure("alice")
    assert fake_redis.ttls == {"station_manager:login_failures:alice": 60}


@pytest.mark.asyncio
async def test_success_below_threshold_clears_counter(fake_redis):
    policy = AccountLockoutPolicy(redis_provider=lambda: fake_redis, max_failures=3)
    await policy.record_failure("alice")
    await policy.record_failure("alice")

    await policy.authenticate(_principal())
    assert "station_manager:login_failures:alice" not in fake_redis.values


@pytest.mark.asyncio
async def test_lockout_is_per_username(fake_redis):
    policy = AccountLockoutPolicy(redis_provider=lambda: fake_redis, max_failures=1)
    await policy.record_failure("alice")
    await policy.authenticate(_principal("bob"))


@pytest.mark.asyncio
async def test_redis_error_fails_closed(fake_redis):
    fake_redis.broken = True
    policy = AccountLockoutPolicy(redis_provider=lambda: fake_redis)
    with pytest.raises(AuthManagerFailure, match="unavailable"):
        await policy.authenticate(_principal())


@pytest.mark.asyncio
async def test_redis_error_while_recording_is_ignored(fake_redis):
    fake_redis.broken = True
    policy = AccountLockoutPolicy(redis_provider=lambda: fake_redis)
    await policy.record_failure("alice")


@pytest.mark.asyncio
async def test_locked_account_rejected_over_http(session_factory, token_codec, fake_redis):
    """Correct password, but the policy refuses: 401 with the policy's message."""
    app = create_app(
        session_factory=session_factory,
        token_codec=token_codec,
        login_policy=AccountLockoutPolicy(
            redis_provider=lambda: fake_redis, max_failures=2
        ),
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await client.post(
            "/api/authentication/register",
            json={"name": "A", "username": "alice", "password": "p1"},
        )
        for _ in range(2):
            r = await client.post(
                "/api/authentication/login",
                json={"username": "alice", "password": "wrong"},
            )
            assert r.json()["message"] == "Wrong password"

        r = await client.post(
            "/api/authentication/login", json={"username": "alice", "password": "p1"}
        )
        assert r.status_code == 401
        assert r.json() == {"message": "Account temporarily locked", "data": None}


@pytest.mark.asyncio
async def test_locked_account_still_checks_password_first(session_factory, token_codec, fake_redis):
    """Wrong guesses on a locked account keep failing as bad passwords and keep counting."""
    app = create_app(
        session_factory=session_factory,
        token_codec=token_codec,
        login_policy=AccountLockoutPolicy(
            redis_provider=lambda: fake_redis, max_failures=1
        ),
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await client.post(
            "/api/authentication/register",
            json={"name": "A", "username": "alice", "password": "p1"},
        )
        for attempt in range(1, 4):
            r = await client.post(
                "/api/authentication/login",
                json={"username": "alice", "password": "wrong"},
            )
            assert r.json()["message"] == "Wrong password"
            assert fake_redis.values["station_manager:login_failures:alice"] == attempt

        r = await client.post(
            "/api/authentication/login", json={"username": "alice", "password": "p1"}
        )
        assert r.json()["message"] == "Account temporarily locked"
        assert r.json()["data"] is None
