"""Per-request auth context and FastAPI auth dependencies.

Learn: The authentication middleware builds a fresh ``AuthContext`` for
every request and stores it on ``request.state.auth``. Nothing about the
caller's identity lives in module or process state.

Two dependencies read it:
1. ``get_auth_context`` — the "soft" one, never fails
2. ``require_principal`` — the "hard" one, 401 for anonymous requests.
   Routes that need an identity declare it explicitly.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from station_manager.auth.errors import AuthenticationRequired
from station_manager.auth.jwt import TokenClaims
from station_manager.auth.service import AuthenticationService
from station_manager.auth.store import Principal, SqlCredentialStore
from station_manager.db.engine import get_db


@dataclass
class AuthContext:
    """Who is making this request. Owned by exactly one request."""

    principal: Optional[Principal] = None
    claims: Optional[TokenClaims] = None

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None

    def authenticate(self, principal: Principal, claims: TokenClaims) -> None:
        self.principal = principal
        self.claims = claims


def get_auth_context(request: Request) -> AuthContext:
    """Current request's context (anonymous if the middleware set none)."""
    context = getattr(request.state, "auth", None)
    return context if context is not None else AuthContext()


def require_principal(
    context: AuthContext = Depends(get_auth_context),
) -> Principal:
    if not context.is_authenticated:
        raise AuthenticationRequired()
    return context.principal


def get_auth_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthenticationService:
    state = request.app.state
    return AuthenticationService(
        store=SqlCredentialStore(db),
        codec=state.token_codec,
        policy=state.login_policy,
        bcrypt_rounds=state.bcrypt_rounds,
    )
