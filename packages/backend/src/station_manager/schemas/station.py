"""Station schemas — the external transit feed and the local station view.

The external feed uses snake_case keys (``route_group_id``, ``stop_times``)
and leaves most fields optional; anything missing is filled with an empty
default when mapped into a station document.
"""

import uuid
from typing import Any, Optional

from pydantic import BaseModel

from station_manager.schemas.common import CamelModel


class ExternalStopTime(BaseModel):
    service_id: Optional[int] = None
    departure_time: Optional[str] = None
    departure_timestamp: Optional[int] = None
    shape: Optional[str] = None


class ExternalRoute(BaseModel):
    route_group_id: Optional[str] = None
    uri: Optional[str] = None
    name: Optional[str] = None
    stop_times: Optional[list[ExternalStopTime]] = None


class ExternalStop(BaseModel):
    agency: Optional[str] = None
    uri: Optional[str] = None
    name: Optional[str] = None
    routes: Optional[list[ExternalRoute]] = None


class ExternalStationResponse(BaseModel):
    name: Optional[str] = None
    uri: Optional[str] = None
    stops: Optional[list[ExternalStop]] = None


class StationRead(CamelModel):
    id: uuid.UUID
    station_uri: str
    station_agency: str
    station_name: str
    station_routes: list[dict[str, Any]]
