"""SqlCredentialStore tests against the in-memory database."""

import pytest

from station_manager.auth.errors import DuplicateUsername
from station_manager.auth.store import SqlCredentialStore, session_store_factory


@pytest.mark.asyncio
async def test_create_and_find(db_session):
    store = SqlCredentialStore(db_session)
    created = await store.create(name="A", username="alice", password_hash="$2b$hash")

    found = await store.find_by_username("alice")
    assert found == created
    assert found.refresh_token is None


@pytest.mark.asyncio
async def test_find_unknown_returns_none(db_session):
    assert await SqlCredentialStore(db_session).find_by_username("nobody") is None


@pytest.mark.asyncio
async def test_find_is_case_sensitive(db_session):
    store = SqlCredentialStore(db_session)
    await store.create(name="A", username="alice", password_hash="h")
    assert await store.find_by_username("Alice") is None


@pytest.mark.asyncio
async def test_unique_violation_is_duplicate_username(db_session):
    store = SqlCredentialStore(db_session)
    await store.create(name="A", username="alice", password_hash="h1")
    with pytest.raises(DuplicateUsername):
        await store.create(name="Other", username="alice", password_hash="h2")

    # The session is usable again and the original row is intact
    found = await store.find_by_username("alice")
    assert found.name == "A"
    assert found.password_hash == "h1"


@pytest.mark.asyncio
async def test_update_refresh_token_overwrites(db_session):
    store = SqlCredentialStore(db_session)
    await store.create(name="A", username="alice", password_hash="h")
    await store.update_refresh_token("alice", "first")
    await store.update_refresh_token("alice", "second")
    assert (await store.find_by_username("alice")).refresh_token == "second"


@pytest.mark.asyncio
async def test_session_store_factory_opens_fresh_sessions(session_factory, db_session):
    await SqlCredentialStore(db_session).create(name="A", username="alice", password_hash="h")

    open_store = session_store_factory(session_factory)
    async with open_store() as store:
        assert (await store.find_by_username("alice")).username == "alice"
