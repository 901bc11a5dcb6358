"""Auth request/response schemas."""

import uuid

from pydantic import Field

from station_manager.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class LoginRequest(CamelModel):
    username: str
    password: str


class RefreshRequest(CamelModel):
    refresh_token: str


class PrincipalRead(CamelModel):
    """A user as returned by the API — never includes the password hash."""

    id: uuid.UUID
    name: str
    username: str


class TokenPairRead(CamelModel):
    token: str
    refresh_token: str
