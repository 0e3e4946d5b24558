"""Route endpoints.

Endpoints
---------
GET /routes              - list routes, or search them with ``q``
GET /routes/{token}      - one route with both directions and their stops
"""

from __future__ import annotations

from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from transit_planner.database import TransitDataset, get_dataset
from transit_planner.logging import get_logger
from transit_planner.services.errors import InvalidInputError
from transit_planner.services.lookup.routes import RouteLookup

logger = get_logger(__name__)

router = APIRouter(tags=["routes"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RouteSummary(BaseModel):
    route_id: str
    short_name: str
    long_name: str
    mode: str
    color: Optional[str] = None


class RouteListResponse(BaseModel):
    items: list[RouteSummary]
    count: int
    mode: Optional[str] = None
    query: Optional[str] = None


class PatternStopItem(BaseModel):
    sequence: int
    stop_id: str
    name: str
    lat: float
    lon: float


class DirectionItem(BaseModel):
    pattern_id: int
    direction: int
    direction_name: str
    headsign: str
    from_stop_name: str
    to_stop_name: str
    stop_count: int
    stops: list[PatternStopItem]


class RouteDetailResponse(RouteSummary):
    directions: list[DirectionItem]


# ---------------------------------------------------------------------------
# GET /routes
# ---------------------------------------------------------------------------


@router.get(
    "/routes",
    response_model=RouteListResponse,
    summary="List or search routes",
    description=(
        "Without `q`, list every route (numeric short names first). With `q`, "
        "return routes whose short or long name contains it, exact short-name "
        "matches first."
    ),
)
async def list_routes(
    dataset: Annotated[TransitDataset, Depends(get_dataset)],
    mode: Annotated[
        Optional[str],
        Query(description="Transport mode filter (Bus, Metro, Tram, Rail, Ferry)"),
    ] = None,
    q: Annotated[
        Optional[str],
        Query(max_length=100, description="Route number or name fragment"),
    ] = None,
) -> dict[str, Any]:
    lookup = RouteLookup(dataset)
    try:
        if q is not None and q.strip():
            routes = await lookup.search_routes(q, mode=mode)
        else:
            routes = await lookup.list_routes(mode=mode)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "items": [r.to_dict() for r in routes],
        "count": len(routes),
        "mode": mode,
        "query": q,
    }


# ---------------------------------------------------------------------------
# GET /routes/{token}
# ---------------------------------------------------------------------------


@router.get(
    "/routes/{token}",
    response_model=RouteDetailResponse,
    summary="Get a route with its directions",
    description=(
        "Resolve `token` as a route id, then short name, then best name match, "
        "and return the route's Upward/Downward patterns with ordered stops."
    ),
)
async def get_route(
    token: str,
    dataset: Annotated[TransitDataset, Depends(get_dataset)],
    mode: Annotated[Optional[str], Query(description="Transport mode filter")] = None,
) -> dict[str, Any]:
    try:
        detail = await RouteLookup(dataset).get_route_detail(token, mode=mode)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if detail is None:
        raise HTTPException(status_code=404, detail=f"Route '{token}' not found")
    return detail.to_dict()
