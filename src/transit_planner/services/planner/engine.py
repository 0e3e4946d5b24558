"""Journey planner: direct and single-transfer connections between two stops.

Planning works on stop order only. A pattern connects A to B when it visits
A at a lower sequence than B; the number of sequence steps between them is
the only cost considered.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import text

from transit_planner.config import get_settings
from transit_planner.logging import get_logger
from transit_planner.models import RouteMode
from transit_planner.services.errors import InvalidInputError
from transit_planner.services.lookup.stops import StopLookup
from transit_planner.services.planner.results import (
    DirectRoute,
    JourneyPlan,
    TransferLeg,
    TransferRoute,
)

if TYPE_CHECKING:
    from transit_planner.database import TransitDataset
    from transit_planner.services.lookup.stops import StopInfo

logger = get_logger(__name__)

_ROUTE_FIELDS = """
    rp.pattern_id,
    rp.route_id,
    rp.direction,
    rp.headsign,
    COALESCE(r.short_name, '') AS short_name,
    COALESCE(r.long_name, '') AS long_name,
    COALESCE(r.mode, :default_mode) AS mode,
    r.color
"""

_DIRECT_SQL = f"""
    SELECT
        {_ROUTE_FIELDS},
        ps1.sequence AS from_sequence,
        ps2.sequence AS to_sequence
    FROM pattern_stops ps1
    JOIN pattern_stops ps2
        ON ps2.pattern_id = ps1.pattern_id AND ps2.sequence > ps1.sequence
    JOIN route_patterns rp ON rp.pattern_id = ps1.pattern_id
    LEFT JOIN routes r ON r.route_id = rp.route_id
    WHERE ps1.stop_id = :from_stop AND ps2.stop_id = :to_stop
    ORDER BY ps2.sequence - ps1.sequence, rp.pattern_id
"""

# Phase 1: stops reachable by riding forward from the origin
_REACHABLE_FROM_SQL = f"""
    SELECT
        {_ROUTE_FIELDS},
        ps2.stop_id AS stop_id,
        COALESCE(s.name, '') AS stop_name,
        ps2.sequence - ps1.sequence AS stops_between
    FROM pattern_stops ps1
    JOIN pattern_stops ps2
        ON ps2.pattern_id = ps1.pattern_id AND ps2.sequence > ps1.sequence
    JOIN route_patterns rp ON rp.pattern_id = ps1.pattern_id
    LEFT JOIN routes r ON r.route_id = rp.route_id
    LEFT JOIN stops s ON s.stop_id = ps2.stop_id
    WHERE ps1.stop_id = :stop_id
    ORDER BY rp.pattern_id, ps2.sequence
"""

# Phase 2: stops from which riding forward reaches the destination
_CAN_REACH_TO_SQL = f"""
    SELECT
        {_ROUTE_FIELDS},
        ps1.stop_id AS stop_id,
        ps2.sequence - ps1.sequence AS stops_between
    FROM pattern_stops ps2
    JOIN pattern_stops ps1
        ON ps1.pattern_id = ps2.pattern_id AND ps1.sequence < ps2.sequence
    JOIN route_patterns rp ON rp.pattern_id = ps2.pattern_id
    LEFT JOIN routes r ON r.route_id = rp.route_id
    WHERE ps2.stop_id = :stop_id
    ORDER BY rp.pattern_id, ps1.sequence
"""


def _leg(row: Any, board_stop_id: str, alight_stop_id: str) -> TransferLeg:
    return TransferLeg(
        pattern_id=row.pattern_id,
        route_id=row.route_id,
        short_name=row.short_name,
        long_name=row.long_name,
        mode=row.mode,
        color=row.color,
        direction=row.direction,
        headsign=row.headsign or "",
        board_stop_id=board_stop_id,
        alight_stop_id=alight_stop_id,
        stops_between=row.stops_between,
    )


class JourneyPlanner:
    """Finds direct and one-transfer journeys over a dataset."""

    def __init__(self, dataset: TransitDataset) -> None:
        self._dataset = dataset
        self._stops = StopLookup(dataset)
        self._settings = get_settings()

    async def find_direct(self, from_stop_id: str, to_stop_id: str) -> list[DirectRoute]:
        """Patterns visiting the origin before the destination, fewest stops first.

        Raises:
            InvalidInputError: If an id is blank or both ids are equal.
            StopNotFoundError: If either stop does not exist.
        """
        origin, destination = await self._resolve(from_stop_id, to_stop_id)
        return await self._direct(origin.stop_id, destination.stop_id)

    async def find_transfer(self, from_stop_id: str, to_stop_id: str) -> list[TransferRoute]:
        """One-change journeys between two different routes, in discovery order.

        The first matches found are returned without ranking.

        Raises:
            InvalidInputError: If an id is blank or both ids are equal.
            StopNotFoundError: If either stop does not exist.
        """
        origin, destination = await self._resolve(from_stop_id, to_stop_id)
        return await self._transfer(origin.stop_id, destination.stop_id)

    async def plan(self, from_stop_id: str, to_stop_id: str) -> JourneyPlan:
        """Direct options if any exist, else transfer options, else no connection."""
        origin, destination = await self._resolve(from_stop_id, to_stop_id)

        direct = await self._direct(origin.stop_id, destination.stop_id)
        if direct:
            return JourneyPlan(kind="direct", from_stop=origin, to_stop=destination, options=direct)

        transfers = await self._transfer(origin.stop_id, destination.stop_id)
        if transfers:
            return JourneyPlan(
                kind="transfer", from_stop=origin, to_stop=destination, options=transfers
            )

        logger.info(
            "No connection within one transfer",
            from_stop=origin.stop_id,
            to_stop=destination.stop_id,
        )
        return JourneyPlan(
            kind="none",
            from_stop=origin,
            to_stop=destination,
            reason=(
                f"No direct or single-transfer connection from {origin.name or origin.stop_id} "
                f"to {destination.name or destination.stop_id}"
            ),
        )

    async def _resolve(self, from_stop_id: str, to_stop_id: str) -> tuple[StopInfo, StopInfo]:
        from_stop_id = (from_stop_id or "").strip()
        to_stop_id = (to_stop_id or "").strip()
        if not from_stop_id or not to_stop_id:
            raise InvalidInputError("Both origin and destination stop ids are required")
        if from_stop_id == to_stop_id:
            raise InvalidInputError("Origin and destination must be different stops")

        origin = await self._stops.get_stop(from_stop_id)
        destination = await self._stops.get_stop(to_stop_id)
        return origin, destination

    async def _direct(self, from_stop_id: str, to_stop_id: str) -> list[DirectRoute]:
        async with self._dataset.session() as session:
            result = await session.execute(
                text(_DIRECT_SQL),
                {
                    "from_stop": from_stop_id,
                    "to_stop": to_stop_id,
                    "default_mode": RouteMode.BUS.value,
                },
            )
            rows = result.fetchall()

        # Rows arrive smallest gap first, so the first row per pattern wins
        seen: set[int] = set()
        routes: list[DirectRoute] = []
        for row in rows:
            if row.pattern_id in seen:
                continue
            seen.add(row.pattern_id)
            routes.append(
                DirectRoute(
                    pattern_id=row.pattern_id,
                    route_id=row.route_id,
                    short_name=row.short_name,
                    long_name=row.long_name,
                    mode=row.mode,
                    color=row.color,
                    direction=row.direction,
                    headsign=row.headsign or "",
                    from_sequence=row.from_sequence,
                    to_sequence=row.to_sequence,
                )
            )
            if len(routes) >= self._settings.direct_result_limit:
                break
        return routes

    async def _transfer(self, from_stop_id: str, to_stop_id: str) -> list[TransferRoute]:
        async with self._dataset.session() as session:
            outbound_result = await session.execute(
                text(_REACHABLE_FROM_SQL),
                {"stop_id": from_stop_id, "default_mode": RouteMode.BUS.value},
            )
            reachable = outbound_result.fetchall()

            inbound_result = await session.execute(
                text(_CAN_REACH_TO_SQL),
                {"stop_id": to_stop_id, "default_mode": RouteMode.BUS.value},
            )
            feeders: dict[str, list[Any]] = {}
            for row in inbound_result.fetchall():
                feeders.setdefault(row.stop_id, []).append(row)

        limit = self._settings.transfer_result_limit
        seen: set[tuple[str, str, str]] = set()
        transfers: list[TransferRoute] = []
        for first in reachable:
            transfer_stop = first.stop_id
            if transfer_stop in (from_stop_id, to_stop_id):
                continue
            for second in feeders.get(transfer_stop, []):
                if second.route_id == first.route_id:
                    continue
                key = (first.route_id, second.route_id, transfer_stop)
                if key in seen:
                    continue
                seen.add(key)
                transfers.append(
                    TransferRoute(
                        first_leg=_leg(first, from_stop_id, transfer_stop),
                        second_leg=_leg(second, transfer_stop, to_stop_id),
                        transfer_stop_id=transfer_stop,
                        transfer_stop_name=first.stop_name,
                    )
                )
                if len(transfers) >= limit:
                    return transfers
        return transfers
