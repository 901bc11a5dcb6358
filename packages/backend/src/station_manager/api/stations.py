"""Stations API — list local stations, re-sync them from the transit feed.

Listing is public. Syncing replaces the whole collection, so it requires
an authenticated principal.
"""

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from station_manager.auth.dependencies import require_principal
from station_manager.auth.store import Principal
from station_manager.db.engine import get_db
from station_manager.schemas.common import Envelope
from station_manager.schemas.station import StationRead
from station_manager.services.station_service import StationFeed, StationService

logger = structlog.get_logger()

router = APIRouter(prefix="/stations")


def get_station_feed(request: Request) -> StationFeed:
    settings = request.app.state.settings
    return StationFeed(
        url=settings.station_feed_url,
        timeout=settings.station_feed_timeout_seconds,
    )


@router.get("", response_model=Envelope[list[StationRead]])
async def list_stations(db: AsyncSession = Depends(get_db)):
    """All stored stations."""
    stations = await StationService(db).list_stations()
    if not stations:
        return Envelope[list[StationRead]](message="No stations found")
    return Envelope[list[StationRead]](
        message="Successfully fetched all stations",
        data=[StationRead.model_validate(s) for s in stations],
    )


@router.post("/save", response_model=Envelope[list[StationRead]])
async def save_stations(
    principal: Principal = Depends(require_principal),
    feed: StationFeed = Depends(get_station_feed),
    db: AsyncSession = Depends(get_db),
):
    """Fetch the external feed and replace the local station collection."""
    logger.info("stations.sync_requested", username=principal.username)
    stations = await StationService(db, feed).sync_from_feed()
    if stations is None:
        return Envelope[list[StationRead]](message="No stations data available to save")
    if not stations:
        return Envelope[list[StationRead]](message="No valid stations data to save")
    return Envelope[list[StationRead]](
        message="Stations saved successfully",
        data=[StationRead.model_validate(s) for s in stations],
    )
