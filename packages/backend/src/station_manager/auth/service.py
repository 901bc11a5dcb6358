"""Authentication service — registration, login, and token refresh.

Learn: Login is a strict sequential pipeline; the first failing step
short-circuits:

    find user → check password → login policy → issue tokens → persist refresh

Nothing is written before the last step, so a failure never needs to be
rolled back. Store errors (SQLAlchemyError, or the OSError a driver raises
when the database is unreachable) are not caught here: they propagate and
are rendered as a 503 by the app's exception handler.
"""

import hmac
from dataclasses import dataclass
from typing import Optional

import structlog

from station_manager.auth.errors import (
    BadCredentials,
    DuplicateUsername,
    TokenInvalid,
    UserNotFound,
)
from station_manager.auth.jwt import TokenCodec, TokenKind
from station_manager.auth.password import DEFAULT_ROUNDS, hash_password, verify_password
from station_manager.auth.policy import AccountLockoutPolicy, LoginPolicy
from station_manager.auth.store import CredentialStore, Credentials, Principal

logger = structlog.get_logger()


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class AuthenticationService:
    """Business logic for password login and bearer-token issuance."""

    def __init__(
        self,
        store: CredentialStore,
        codec: TokenCodec,
        policy: Optional[LoginPolicy] = None,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ):
        self.store = store
        self.codec = codec
        self.policy = policy if policy is not None else AccountLockoutPolicy()
        self.bcrypt_rounds = bcrypt_rounds

    # ─── Register ──────────────────────────────────────

    async def register(self, name: str, username: str, password: str) -> Principal:
        if await self.store.find_by_username(username) is not None:
            logger.info("auth.register_rejected", username=username, reason="duplicate")
            raise DuplicateUsername()

        principal = await self.store.create(
            name=name,
            username=username,
            password_hash=hash_password(password, rounds=self.bcrypt_rounds),
        )
        logger.info("auth.registered", username=username, user_id=str(principal.id))
        return principal

    # ─── Login ─────────────────────────────────────────

    async def login(self, username: str, password: str) -> TokenPair:
        principal = await self.store.find_by_username(username)
        if principal is None:
            logger.info("auth.login_failed", username=username, reason="user_not_found")
            raise UserNotFound()

        if not _password_matches(principal, password):
            await self.policy.record_failure(username)
            logger.info("auth.login_failed", username=username, reason="bad_credentials")
            raise BadCredentials()

        await self.policy.authenticate(principal)

        pair = await self._issue_and_persist(principal)
        logger.info("auth.login_succeeded", username=username)
        return pair

    # ─── Refresh ───────────────────────────────────────

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange the current refresh token for a new pair.

        Only the most recently issued refresh token is accepted; older ones
        are superseded the moment a newer one is persisted.
        """
        claims = self.codec.verify_unexpired(refresh_token, kind=TokenKind.REFRESH)

        principal = await self.store.find_by_username(claims.subject)
        if principal is None:
            raise TokenInvalid("Unknown token subject")
        if not principal.refresh_token or not hmac.compare_digest(
            principal.refresh_token, refresh_token
        ):
            logger.info("auth.refresh_rejected", username=principal.username, reason="superseded")
            raise TokenInvalid("Refresh token has been superseded")

        pair = await self._issue_and_persist(principal)
        logger.info("auth.refreshed", username=principal.username)
        return pair

    async def _issue_and_persist(self, principal: Principal) -> TokenPair:
        pair = TokenPair(
            access_token=self.codec.issue(principal.username, TokenKind.ACCESS),
            refresh_token=self.codec.issue(principal.username, TokenKind.REFRESH),
        )
        await self.store.update_refresh_token(principal.username, pair.refresh_token)
        return pair


def _password_matches(credentials: Credentials, password: str) -> bool:
    return verify_password(password, credentials.password_hash)
