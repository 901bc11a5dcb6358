"""Credential store — username-keyed access to user records.

Learn: The auth service and middleware only need three operations:
look a user up by username, create one, and overwrite its refresh token.
``CredentialStore`` names that seam; ``SqlCredentialStore`` implements it
on the ``users`` table. Records leave the store as frozen ``Principal``
values, never as live ORM objects.
"""

import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncContextManager, AsyncIterator, Callable, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from station_manager.auth.errors import DuplicateUsername
from station_manager.db.models import User


class Credentials(Protocol):
    """What a password check needs from a user record."""

    username: str
    password_hash: str


@dataclass(frozen=True)
class Principal:
    """An authenticated (or authenticatable) user identity."""

    id: uuid.UUID
    name: str
    username: str
    password_hash: str = field(repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_record(cls, user: User) -> "Principal":
        return cls(
            id=user.id,
            name=user.name,
            username=user.username,
            password_hash=user.password_hash,
            refresh_token=user.refresh_token,
        )


class CredentialStore(Protocol):
    async def find_by_username(self, username: str) -> Optional[Principal]: ...

    async def create(self, name: str, username: str, password_hash: str) -> Principal: ...

    async def update_refresh_token(self, username: str, refresh_token: str) -> None: ...


class SqlCredentialStore:
    """CredentialStore over an AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_username(self, username: str) -> Optional[Principal]:
        result = await self.db.execute(select(User).where(User.username == username))
        user = result.scalars().first()
        return Principal.from_record(user) if user else None

    async def create(self, name: str, username: str, password_hash: str) -> Principal:
        user = User(name=name, username=username, password_hash=password_hash)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same username
            await self.db.rollback()
            raise DuplicateUsername()
        await self.db.refresh(user)
        return Principal.from_record(user)

    async def update_refresh_token(self, username: str, refresh_token: str) -> None:
        await self.db.execute(
            update(User)
            .where(User.username == username)
            .values(refresh_token=refresh_token)
        )
        await self.db.commit()


StoreFactory = Callable[[], AsyncContextManager[CredentialStore]]


def session_store_factory(session_factory: async_sessionmaker) -> StoreFactory:
    """Build a factory that opens a short-lived store on a fresh session.

    Used by the authentication middleware, which runs outside FastAPI's
    dependency injection and so cannot use ``get_db``.
    """

    @asynccontextmanager
    async def open_store() -> AsyncIterator[CredentialStore]:
        async with session_factory() as session:
            yield SqlCredentialStore(session)

    return open_store
