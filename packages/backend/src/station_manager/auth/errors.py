"""Authentication error taxonomy."""

from station_manager.errors import APIError


class AuthError(APIError):
    """Base for authentication failures (401 unless overridden)."""

    status_code = 401
    message = "Authentication failed"


class DuplicateUsername(AuthError):
    status_code = 400
    message = "Username already taken"


class UserNotFound(AuthError):
    message = "User not found"


class BadCredentials(AuthError):
    message = "Wrong password"


class AuthManagerFailure(AuthError):
    """The login policy step rejected an otherwise valid login."""

    message = "Authentication failed"


class AuthenticationRequired(AuthError):
    message = "Authentication required"


class TokenError(AuthError):
    message = "Invalid token"


class TokenInvalid(TokenError):
    """Malformed, forged, or missing required claims."""


class TokenExpired(TokenError):
    message = "Token has expired"
