"""Authentication middleware — bearer token → per-request AuthContext.

Learn: This middleware never rejects a request. It only decides who the
caller is and publishes that on ``request.state.auth``:

    exempt path?          → anonymous, forward
    no "Bearer " header?  → anonymous, forward
    bad signature/format  → log auth.token_invalid, anonymous
    already authenticated → keep the existing identity
    unknown username      → log auth.unknown_subject, anonymous
    store unreachable     → log auth.store_unavailable, anonymous
    expired / wrong sub   → log the reason, anonymous
    otherwise             → authenticated

Routes that must have an identity use ``require_principal``; public
routes simply ignore the context.
"""

from typing import Iterable, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from station_manager.auth.dependencies import AuthContext
from station_manager.auth.errors import TokenInvalid
from station_manager.auth.jwt import TokenCodec
from station_manager.auth.store import StoreFactory

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "


class ExemptPaths:
    """Path prefixes that skip authentication entirely."""

    def __init__(self, prefixes: Iterable[str]):
        self.prefixes = tuple(prefixes)

    def matches(self, path: str) -> bool:
        return path.startswith(self.prefixes)


class RequestAuthenticator:
    """Resolve the caller's identity from an Authorization header."""

    def __init__(
        self,
        codec: TokenCodec,
        store_factory: StoreFactory,
        exempt: ExemptPaths,
    ):
        self.codec = codec
        self.store_factory = store_factory
        self.exempt = exempt

    async def authenticate(
        self,
        path: str,
        authorization: Optional[str],
        context: AuthContext,
    ) -> AuthContext:
        if self.exempt.matches(path):
            return context

        if not authorization or not authorization.startswith(BEARER_PREFIX):
            return context

        token = authorization[len(BEARER_PREFIX):]
        try:
            claims = self.codec.verify(token)
        except TokenInvalid as e:
            logger.info("auth.token_invalid", path=path, error=e.message)
            return context

        if context.is_authenticated:
            return context

        try:
            async with self.store_factory() as store:
                principal = await store.find_by_username(claims.subject)
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "auth.store_unavailable",
                path=path,
                error_type=type(e).__name__,
                error=str(e),
            )
            return context

        if principal is None:
            logger.info("auth.unknown_subject", path=path, username=claims.subject)
            return context

        if not self.codec.validate_claims(claims, principal.username):
            reason = (
                "auth.token_expired"
                if self.codec.claims_expired(claims)
                else "auth.subject_mismatch"
            )
            logger.info(reason, path=path, username=claims.subject)
            return context

        context.authenticate(principal, claims)
        structlog.contextvars.bind_contextvars(username=principal.username)
        return context


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Attach an AuthContext to every request, then always forward."""

    def __init__(self, app, authenticator: RequestAuthenticator):
        super().__init__(app)
        self.authenticator = authenticator

    async def dispatch(self, request: Request, call_next) -> Response:
        context = getattr(request.state, "auth", None) or AuthContext()
        request.state.auth = await self.authenticator.authenticate(
            request.url.path,
            request.headers.get("Authorization"),
            context,
        )
        return await call_next(request)
