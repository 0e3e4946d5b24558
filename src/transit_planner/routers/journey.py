"""Journey planning endpoint.

GET /journey?from=<stop_id>&to=<stop_id>

Returns direct options when any pattern serves both stops in order,
otherwise single-transfer options, otherwise ``kind="none"`` with a reason.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from transit_planner.database import TransitDataset, get_dataset
from transit_planner.logging import get_logger
from transit_planner.routers.stops import StopItem
from transit_planner.services.errors import InvalidInputError, NotFoundError
from transit_planner.services.planner.engine import JourneyPlanner

logger = get_logger(__name__)

router = APIRouter(tags=["journey"])


class DirectOption(BaseModel):
    kind: Literal["direct"]
    pattern_id: int
    route_id: str
    short_name: str
    long_name: str
    mode: str
    color: Optional[str] = None
    direction: int
    headsign: str
    from_sequence: int
    to_sequence: int
    stops_between: int


class Leg(BaseModel):
    pattern_id: int
    route_id: str
    short_name: str
    long_name: str
    mode: str
    color: Optional[str] = None
    direction: int
    headsign: str
    board_stop_id: str
    alight_stop_id: str
    stops_between: int


class TransferOption(BaseModel):
    kind: Literal["transfer"]
    transfer_stop_id: str
    transfer_stop_name: str
    total_stops: int
    legs: list[Leg]


class JourneyResponse(BaseModel):
    kind: Literal["direct", "transfer", "none"]
    from_stop: StopItem = Field(alias="from")
    to_stop: StopItem = Field(alias="to")
    options: list[Annotated[Union[DirectOption, TransferOption], Field(discriminator="kind")]]
    reason: Optional[str] = None


@router.get(
    "/journey",
    response_model=JourneyResponse,
    response_model_by_alias=True,
    summary="Plan a journey between two stops",
    description=(
        "Direct routes are ranked by the number of stops between origin and "
        "destination. Transfer options are returned in discovery order, at "
        "most five, and always use two different routes."
    ),
)
async def plan_journey(
    dataset: Annotated[TransitDataset, Depends(get_dataset)],
    from_stop: Annotated[str, Query(alias="from", description="Origin stop id")] = "",
    to_stop: Annotated[str, Query(alias="to", description="Destination stop id")] = "",
) -> dict[str, Any]:
    try:
        plan = await JourneyPlanner(dataset).plan(from_stop, to_stop)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    logger.info(
        "Journey planned",
        from_stop=from_stop,
        to_stop=to_stop,
        kind=plan.kind,
        options=len(plan.options),
    )
    return plan.to_dict()
