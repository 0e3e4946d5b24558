"""Stop endpoints.

Endpoints
---------
GET /stops/search              - stops whose name contains every query word
GET /stops/nearby              - stops within a radius, nearest first
GET /stops/{stop_id}/routes    - routes and directions serving a stop
"""

from __future__ import annotations

from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from transit_planner.database import TransitDataset, get_dataset
from transit_planner.logging import get_logger
from transit_planner.services.errors import InvalidInputError, NotFoundError
from transit_planner.services.lookup.stops import StopLookup

logger = get_logger(__name__)

router = APIRouter(tags=["stops"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class StopItem(BaseModel):
    stop_id: str
    name: str
    lat: float
    lon: float
    kind: str


class StopSearchResponse(BaseModel):
    query: str
    items: list[StopItem]
    count: int


class StopNearby(StopItem):
    distance_m: float


class NearbyStopsResponse(BaseModel):
    items: list[StopNearby]
    radius_m: float
    count: int


class StopRouteItem(BaseModel):
    route_id: str
    short_name: str
    long_name: str
    mode: str
    color: Optional[str] = None
    direction: int
    direction_name: str
    headsign: str


class StopRoutesResponse(BaseModel):
    stop: StopItem
    routes: list[StopRouteItem]


# ---------------------------------------------------------------------------
# GET /stops/search
# ---------------------------------------------------------------------------


@router.get(
    "/stops/search",
    response_model=StopSearchResponse,
    summary="Search stops by name",
    description=(
        "Case-insensitive search. Every word of `q` must appear in the stop "
        "name, in any order. Names starting with the first word rank first."
    ),
)
async def search_stops(
    dataset: Annotated[TransitDataset, Depends(get_dataset)],
    q: Annotated[str, Query(max_length=100, description="Stop name words")] = "",
) -> dict[str, Any]:
    try:
        stops = await StopLookup(dataset).search_stops(q)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "query": q,
        "items": [s.to_dict() for s in stops],
        "count": len(stops),
    }


# ---------------------------------------------------------------------------
# GET /stops/nearby
# ---------------------------------------------------------------------------


@router.get(
    "/stops/nearby",
    response_model=NearbyStopsResponse,
    summary="Find stops near a location",
    description=(
        "Return stops inside a bounding box of `radius_m` around the given "
        "coordinates, ordered by approximate distance ascending."
    ),
)
async def get_nearby_stops(
    dataset: Annotated[TransitDataset, Depends(get_dataset)],
    lat: Annotated[float, Query(description="Latitude of the search centre")],
    lon: Annotated[float, Query(description="Longitude of the search centre")],
    radius_m: Annotated[
        Optional[float],
        Query(description="Search radius in metres"),
    ] = None,
) -> dict[str, Any]:
    lookup = StopLookup(dataset)
    radius = radius_m if radius_m is not None else lookup.default_radius_m
    try:
        stops = await lookup.nearby_stops(lat, lon, radius)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "items": [s.to_dict() for s in stops],
        "radius_m": radius,
        "count": len(stops),
    }


# ---------------------------------------------------------------------------
# GET /stops/{stop_id}/routes
# ---------------------------------------------------------------------------


@router.get(
    "/stops/{stop_id}/routes",
    response_model=StopRoutesResponse,
    summary="Get routes serving a stop",
    description="Routes and directions serving the stop, from the stop-to-route index.",
)
async def get_stop_routes(
    stop_id: str,
    dataset: Annotated[TransitDataset, Depends(get_dataset)],
) -> dict[str, Any]:
    """Return routes serving a stop, or 404 if stop not found."""
    try:
        stop_routes = await StopLookup(dataset).routes_at_stop(stop_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return stop_routes.to_dict()
