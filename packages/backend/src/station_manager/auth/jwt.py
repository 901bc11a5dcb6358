"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: 24h, presented as ``Authorization: Bearer <token>``
- Refresh token: 5 days, exchanged for a new pair; only the latest one
  per user is persisted

Signature, expiry, and subject binding are checked separately so callers
can tell a forged token from an expired one. ``verify`` decodes the claims
once; the expiry and subject checks then run on the decoded claims.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional

import jwt
from jwt.utils import base64url_decode, base64url_encode

from station_manager.auth.errors import TokenExpired, TokenInvalid

ACCESS_TOKEN_TTL = timedelta(hours=24)
REFRESH_TOKEN_TTL = timedelta(days=5)

REQUIRED_CLAIMS = ["sub", "type", "iat", "exp"]
RESERVED_CLAIMS = frozenset(REQUIRED_CLAIMS + ["jti"])


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, signature-checked token claims."""

    subject: str
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime
    token_id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Issue and verify HMAC-signed tokens with one process-wide key.

    The key is fixed for the codec's lifetime and only ever read, so a single
    instance is shared by every request.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_ttl: timedelta = REFRESH_TOKEN_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self._ttls = {TokenKind.ACCESS: access_ttl, TokenKind.REFRESH: refresh_ttl}
        self._clock = clock

    @classmethod
    def from_settings(cls, settings) -> "TokenCodec":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(hours=settings.access_token_expire_hours),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
        )

    def issue(
        self,
        subject: str,
        kind: TokenKind = TokenKind.ACCESS,
        extra_claims: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Create a signed token for ``subject``.

        Reserved claims (sub, type, iat, exp, jti) always override
        extra claims of the same name.
        """
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + self._ttls[kind]
        payload = dict(extra_claims or {})
        payload.update({
            "sub": subject,
            "type": kind.value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": secrets.token_urlsafe(16),
        })
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Check the signature and decode the claims. Expiry is NOT checked.

        Raises TokenInvalid on any malformed, forged, or incomplete token.
        """
        _check_signature_encoding(token)
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidTokenError as e:
            raise TokenInvalid(f"Invalid token: {e}")

        try:
            return TokenClaims(
                subject=payload["sub"],
                kind=TokenKind(payload["type"]),
                issued_at=_from_timestamp(payload["iat"]),
                expires_at=_from_timestamp(payload["exp"]),
                token_id=payload.get("jti"),
                extra={k: v for k, v in payload.items() if k not in RESERVED_CLAIMS},
            )
        except (TypeError, ValueError, OverflowError, OSError):
            raise TokenInvalid("Invalid token: malformed claims")

    def claims_expired(self, claims: TokenClaims) -> bool:
        return self._clock() >= claims.expires_at

    def is_expired(self, token: str) -> bool:
        """True once the current time reaches the token's expiration."""
        return self.claims_expired(self.verify(token))

    def validate_claims(self, claims: TokenClaims, expected_username: str) -> bool:
        return claims.subject == expected_username and not self.claims_expired(claims)

    def validate_against_principal(self, token: str, expected_username: str) -> bool:
        """Full authentication predicate: signature, subject binding, expiry."""
        try:
            claims = self.verify(token)
        except TokenInvalid:
            return False
        return self.validate_claims(claims, expected_username)

    def verify_unexpired(
        self, token: str, kind: Optional[TokenKind] = None
    ) -> TokenClaims:
        """Verify, then reject expired tokens and tokens of the wrong kind."""
        claims = self.verify(token)
        if kind is not None and claims.kind is not kind:
            raise TokenInvalid(f"Not a {kind.value} token")
        if self.claims_expired(claims):
            raise TokenExpired()
        return claims


def _from_timestamp(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _check_signature_encoding(token: str) -> None:
    """Reject tokens whose signature segment is not canonical base64url.

    The last base64 character of an HMAC signature carries unused bits,
    so two spellings can decode to the same bytes. Only the canonical
    spelling is accepted, so any altered character fails verification.
    """
    if not isinstance(token, str):
        raise TokenInvalid("Invalid token: not a string")
    segments = token.split(".")
    if len(segments) != 3:
        raise TokenInvalid("Invalid token: wrong number of segments")
    signature = segments[2]
    try:
        canonical = base64url_encode(base64url_decode(signature)).decode("ascii")
    except (TypeError, ValueError):
        raise TokenInvalid("Invalid token: bad signature encoding")
    if canonical != signature:
        raise TokenInvalid("Invalid token: bad signature encoding")
