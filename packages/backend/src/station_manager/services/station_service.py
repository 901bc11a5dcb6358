"""Station service — pull stops from the transit feed into the local store.

Learn: The feed is fetched with httpx and validated into pydantic models
before anything touches the database. A successful sync replaces the
whole local collection in one transaction; an empty or failed fetch
leaves it untouched.
"""

from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from station_manager.db.models import Station
from station_manager.errors import StationFeedError
from station_manager.schemas.station import (
    ExternalRoute,
    ExternalStationResponse,
    ExternalStop,
    ExternalStopTime,
)

logger = structlog.get_logger()


class StationFeed:
    """HTTP client for the external transit feed."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def fetch(self) -> ExternalStationResponse:
        if not self.url:
            raise StationFeedError("Station feed URL is not configured")

        logger.info("stations.fetching", url=self.url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                resp = await client.get(self.url)
                resp.raise_for_status()
                return ExternalStationResponse.model_validate(resp.json())
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.error("stations.fetch_failed", url=self.url, error=str(e))
            raise StationFeedError(f"Failed to fetch stations from external API: {e}")


class StationService:
    """Business logic for the local station collection."""

    def __init__(self, db: AsyncSession, feed: Optional[StationFeed] = None):
        self.db = db
        self.feed = feed

    async def list_stations(self) -> list[Station]:
        result = await self.db.execute(select(Station).order_by(Station.station_name))
        return list(result.scalars().all())

    async def sync_from_feed(self) -> Optional[list[Station]]:
        """Replace the local collection with the feed's stops.

        Returns the saved stations. ``None`` means the feed sent no stops
        list at all, an empty list means it sent nothing usable; in both
        cases the stored collection is left as it was.
        """
        response = await self.feed.fetch()
        if response.stops is None:
            logger.warning("stations.feed_missing_stops", url=self.feed.url)
            return None

        stations = [map_stop(stop) for stop in response.stops]
        if not stations:
            logger.warning("stations.feed_empty", url=self.feed.url)
            return []

        await self.db.execute(delete(Station))
        self.db.add_all(stations)
        await self.db.commit()
        logger.info("stations.saved", count=len(stations))
        return stations


# ─── Feed → document mapping ───────────────────────────


def map_stop(stop: ExternalStop) -> Station:
    return Station(
        station_uri=stop.uri or "",
        station_agency=stop.agency or "",
        station_name=stop.name or "",
        station_routes=[map_route(route) for route in stop.routes or []],
    )


def map_route(route: ExternalRoute) -> dict[str, Any]:
    stop_times = [map_stop_time(st) for st in route.stop_times or []]
    return {
        "routeGroupId": route.route_group_id or "",
        "uri": route.uri or "",
        "name": route.name or "",
        "stopTimesCount": len(stop_times),
        "stopTimes": stop_times,
    }


def map_stop_time(stop_time: ExternalStopTime) -> dict[str, Any]:
    return {
        "serviceId": stop_time.service_id if stop_time.service_id is not None else 0,
        "departureTime": stop_time.departure_time or "",
        "departureTimestamp": stop_time.departure_timestamp or 0,
        "shape": stop_time.shape or "",
    }
