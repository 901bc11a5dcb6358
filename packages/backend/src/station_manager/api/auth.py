"""Auth API — registration, login, token refresh.

Learn: Routes for first-party password authentication:
- POST /authentication/register → create a user (201)
- POST /authentication/login → username/password → token + refreshToken
- POST /authentication/refresh → current refreshToken → new pair

These paths are exempt from the authentication middleware. Failures are
raised as AuthError subclasses and rendered by the app's error handler
with a distinct message per cause.
"""

from fastapi import APIRouter, Depends

from station_manager.auth.dependencies import get_auth_service
from station_manager.auth.service import AuthenticationService, TokenPair
from station_manager.schemas.auth import (
    LoginRequest,
    PrincipalRead,
    RefreshRequest,
    RegisterRequest,
    TokenPairRead,
)
from station_manager.schemas.common import Envelope

router = APIRouter(prefix="/authentication")


def _token_envelope(message: str, pair: TokenPair) -> Envelope[TokenPairRead]:
    return Envelope[TokenPairRead](
        message=message,
        data=TokenPairRead(token=pair.access_token, refresh_token=pair.refresh_token),
    )


@router.post("/register", response_model=Envelope[PrincipalRead], status_code=201)
async def register(
    body: RegisterRequest,
    service: AuthenticationService = Depends(get_auth_service),
):
    """Create a new user account."""
    principal = await service.register(body.name, body.username, body.password)
    return Envelope[PrincipalRead](
        message="User registered successfully",
        data=PrincipalRead.model_validate(principal),
    )


@router.post("/login", response_model=Envelope[TokenPairRead])
async def login(
    body: LoginRequest,
    service: AuthenticationService = Depends(get_auth_service),
):
    """Login with username and password → access and refresh tokens."""
    pair = await service.login(body.username, body.password)
    return _token_envelope("User logged in successfully", pair)


@router.post("/refresh", response_model=Envelope[TokenPairRead])
async def refresh(
    body: RefreshRequest,
    service: AuthenticationService = Depends(get_auth_service),
):
    """Exchange the latest refresh token for a new token pair."""
    pair = await service.refresh(body.refresh_token)
    return _token_envelope("Token refreshed successfully", pair)
