"""Login policy — the re-authentication step after a correct password.

Learn: A correct password is necessary but not sufficient. The policy
runs after the password check and can still refuse the login, e.g. when
the account is locked after too many consecutive failures.

Failures are counted per username in Redis in a fixed window: the key
"station_manager:login_failures:{username}" gets its TTL on the first
failure and is not extended by later ones. Without Redis the policy is
permissive. With Redis configured but failing, the login is refused.

The policy only runs after a correct password, so a locked account still
answers "Wrong password" to wrong guesses. Lockout stops a stolen or
guessed password from being used during the window; throttling guesses
is the job of the per-IP auth bucket in RateLimitMiddleware.
"""

from typing import Callable, Optional, Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from station_manager.auth.errors import AuthManagerFailure
from station_manager.auth.store import Principal
from station_manager.cache import redis_or_none

logger = structlog.get_logger()


class LoginPolicy(Protocol):
    async def authenticate(self, principal: Principal) -> None: ...

    async def record_failure(self, username: str) -> None: ...


class AccountLockoutPolicy:
    """Lock an account after ``max_failures`` bad passwords within the window."""

    def __init__(
        self,
        redis_provider: Callable[[], Optional[aioredis.Redis]] = redis_or_none,
        max_failures: int = 5,
        window_seconds: int = 900,
    ):
        self._redis = redis_provider
        self.max_failures = max_failures
        self.window_seconds = window_seconds

    @staticmethod
    def _key(username: str) -> str:
        return f"station_manager:login_failures:{username}"

    async def record_failure(self, username: str) -> None:
        redis = self._redis()
        if redis is None:
            return
        key = self._key(username)
        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, self.window_seconds)
        except RedisError as e:
            # The caller is already failing the login; don't mask that error.
            logger.warning("auth.lockout_record_failed", username=username, error=str(e))

    async def authenticate(self, principal: Principal) -> None:
        redis = self._redis()
        if redis is None:
            return
        key = self._key(principal.username)
        try:
            failures = int(await redis.get(key) or 0)
            if failures >= self.max_failures:
                logger.warning(
                    "auth.account_locked",
                    username=principal.username,
                    failures=failures,
                )
                raise AuthManagerFailure("Account temporarily locked")
            await redis.delete(key)
        except RedisError as e:
            logger.error("auth.lockout_unavailable", error=str(e))
            raise AuthManagerFailure("Login policy unavailable")
