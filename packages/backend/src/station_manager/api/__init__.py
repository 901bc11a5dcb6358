"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: Authentication is resolved for every request by the middleware,
but enforced per route: handlers that need an identity depend on
``require_principal``. Health and authentication routes are open.
"""

from fastapi import APIRouter

from station_manager.api.auth import router as auth_router
from station_manager.api.health import router as health_router
from station_manager.api.stations import router as stations_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["authentication"])
api_router.include_router(stations_router, tags=["stations"])
