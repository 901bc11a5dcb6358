"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, database engine).
Middleware, error handlers, and routers are all registered here.

Shared, read-only collaborators live on ``app.state``: the settings, the
token codec (one signing key per process), the login policy, and the
session factory. Tests build their own app with a different session
factory and codec.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from station_manager import __version__
from station_manager.api import api_router
from station_manager.auth.jwt import TokenCodec
from station_manager.auth.policy import AccountLockoutPolicy, LoginPolicy
from station_manager.auth.store import session_store_factory
from station_manager.cache import close_redis, init_redis
from station_manager.config import Settings, settings
from station_manager.errors import APIError
from station_manager.schemas.common import error_body

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    config: Settings = app.state.settings
    logger.info(
        "station_manager.starting",
        version=__version__,
        environment=config.environment,
        port=config.port,
    )

    if config.redis_url:
        try:
            await init_redis(config.redis_url)
            logger.info("station_manager.redis_connected")
        except Exception as e:
            # Redis is optional: no rate limiting or lockout without it
            logger.warning("station_manager.redis_unavailable", error=str(e))

    yield

    logger.info("station_manager.shutdown")
    await close_redis()

    from station_manager.db.engine import engine
    await engine.dispose()


DATABASE_UNAVAILABLE = "A database error occurred. Please try again later."


def _validation_message(exc: RequestValidationError) -> str:
    problems = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return "Invalid request: " + "; ".join(problems)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = _validation_message(exc)
        logger.info("http.validation_failed", path=request.url.path, error=message)
        return JSONResponse(status_code=422, content=error_body(message))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=exc.headers,
        )

    async def database_error_handler(request: Request, exc: Exception):
        # asyncpg raises OSError subclasses (e.g. ConnectionRefusedError)
        # that SQLAlchemy does not wrap when the server is unreachable.
        logger.error(
            "station_manager.database_error",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return JSONResponse(status_code=503, content=error_body(DATABASE_UNAVAILABLE))

    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(OSError, database_error_handler)


def create_app(
    config: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker] = None,
    token_codec: Optional[TokenCodec] = None,
    login_policy: Optional[LoginPolicy] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    config = config or settings
    if session_factory is None:
        from station_manager.db.engine import async_session_factory
        session_factory = async_session_factory
    token_codec = token_codec or TokenCodec.from_settings(config)
    login_policy = login_policy or AccountLockoutPolicy(
        max_failures=config.login_max_failures,
        window_seconds=config.login_lockout_seconds,
    )

    app = FastAPI(
        title="Station Manager",
        description="Transit station API with stateless bearer-token authentication",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.session_factory = session_factory
    app.state.token_codec = token_codec
    app.state.login_policy = login_policy
    app.state.bcrypt_rounds = config.bcrypt_rounds

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → Authentication → handler

    from station_manager.middleware.authentication import (
        AuthenticationMiddleware,
        ExemptPaths,
        RequestAuthenticator,
    )
    from station_manager.middleware.rate_limit import RateLimitMiddleware
    from station_manager.middleware.request_id import RequestIdMiddleware
    from station_manager.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        AuthenticationMiddleware,
        authenticator=RequestAuthenticator(
            codec=token_codec,
            store_factory=session_store_factory(session_factory),
            exempt=ExemptPaths(config.auth_exempt_prefixes),
        ),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=config.rate_limit_rpm,
        auth_rpm=config.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    _register_error_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: station_manager.main:app)
app = create_app()
