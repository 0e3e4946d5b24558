"""Route lookup: token resolution, search, listing and direction detail."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import text

from transit_planner.config import get_settings
from transit_planner.logging import get_logger
from transit_planner.models import DIRECTION_NAMES, RouteMode
from transit_planner.services.errors import InvalidInputError

if TYPE_CHECKING:
    from transit_planner.database import TransitDataset

logger = get_logger(__name__)

_ROUTE_COLUMNS = "route_id, short_name, long_name, mode, color"

# Exact short name (or id) > short-name prefix > any other substring hit
_MATCH_SQL = f"""
    SELECT {_ROUTE_COLUMNS}
    FROM routes
    WHERE (
        route_id = :q
        OR casefold(short_name) LIKE :contains ESCAPE '\\'
        OR casefold(long_name) LIKE :contains ESCAPE '\\'
    )
    AND (:mode IS NULL OR mode = :mode)
    ORDER BY
        CASE
            WHEN route_id = :q OR casefold(short_name) = :folded THEN 0
            WHEN casefold(short_name) LIKE :prefix ESCAPE '\\' THEN 1
            ELSE 2
        END,
        short_name,
        route_id
    LIMIT :lim
"""


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class RouteInfo:
    route_id: str
    short_name: str
    long_name: str
    mode: str
    color: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> RouteInfo:
        return cls(
            route_id=row.route_id,
            short_name=row.short_name or "",
            long_name=row.long_name or "",
            mode=row.mode or RouteMode.BUS.value,
            color=row.color,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PatternStopInfo:
    sequence: int
    stop_id: str
    name: str
    lat: float
    lon: float


@dataclass
class DirectionInfo:
    """One direction of a route with its ordered stops."""

    pattern_id: int
    direction: int
    direction_name: str
    headsign: str
    from_stop_name: str
    to_stop_name: str
    stop_count: int
    stops: list[PatternStopInfo] = field(default_factory=list)


@dataclass
class RouteDetail:
    route: RouteInfo
    directions: list[DirectionInfo] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.route.to_dict(),
            "directions": [asdict(d) for d in self.directions],
        }


class RouteLookup:
    """Resolves route tokens against the dataset."""

    def __init__(self, dataset: TransitDataset) -> None:
        self._dataset = dataset
        self._settings = get_settings()

    async def find_route(self, token: str, mode: RouteMode | str | None = None) -> RouteInfo | None:
        """Resolve a route id or short name to a single route.

        Tries an exact ``route_id``, then an exact ``short_name``, then the
        best ranked substring match on short or long name.
        """
        token = _require_token(token)
        mode_value = _mode_value(mode)

        async with self._dataset.session() as session:
            result = await session.execute(
                text(f"""
                    SELECT {_ROUTE_COLUMNS}
                    FROM routes
                    WHERE (route_id = :token OR short_name = :token)
                    AND (:mode IS NULL OR mode = :mode)
                    ORDER BY CASE WHEN route_id = :token THEN 0 ELSE 1 END, route_id
                    LIMIT 1
                """),
                {"token": token, "mode": mode_value},
            )
            row = result.fetchone()
            if row is not None:
                return RouteInfo.from_row(row)

        matches = await self._match(token, mode_value, limit=1)
        return matches[0] if matches else None

    async def search_routes(
        self,
        query: str,
        mode: RouteMode | str | None = None,
        limit: int | None = None,
    ) -> list[RouteInfo]:
        """Ranked substring search on short and long names."""
        query = _require_token(query)
        return await self._match(
            query,
            _mode_value(mode),
            limit=limit or self._settings.route_search_limit,
        )

    async def list_routes(self, mode: RouteMode | str | None = None) -> list[RouteInfo]:
        """All routes, numeric short names first in numeric order, then alphabetical."""
        async with self._dataset.session() as session:
            result = await session.execute(
                text(f"""
                    SELECT {_ROUTE_COLUMNS}
                    FROM routes
                    WHERE (:mode IS NULL OR mode = :mode)
                    ORDER BY
                        CASE WHEN short_name GLOB '[0-9]*' THEN 0 ELSE 1 END,
                        CAST(short_name AS INTEGER),
                        short_name,
                        route_id
                """),
                {"mode": _mode_value(mode)},
            )
            return [RouteInfo.from_row(row) for row in result.fetchall()]

    async def get_route_detail(
        self,
        token: str,
        mode: RouteMode | str | None = None,
    ) -> RouteDetail | None:
        """Route plus its directions (0 then 1) with ordered stops."""
        route = await self.find_route(token, mode)
        if route is None:
            return None

        async with self._dataset.session() as session:
            patterns_result = await session.execute(
                text("""
                    SELECT pattern_id, direction, headsign, stop_count
                    FROM route_patterns
                    WHERE route_id = :route_id
                    ORDER BY direction
                """),
                {"route_id": route.route_id},
            )
            patterns = patterns_result.fetchall()

            stops_result = await session.execute(
                text("""
                    SELECT
                        ps.pattern_id,
                        ps.sequence,
                        ps.stop_id,
                        COALESCE(s.name, '') AS name,
                        COALESCE(s.lat, 0.0) AS lat,
                        COALESCE(s.lon, 0.0) AS lon
                    FROM pattern_stops ps
                    JOIN route_patterns rp ON rp.pattern_id = ps.pattern_id
                    LEFT JOIN stops s ON s.stop_id = ps.stop_id
                    WHERE rp.route_id = :route_id
                    ORDER BY ps.pattern_id, ps.sequence
                """),
                {"route_id": route.route_id},
            )
            stop_rows = stops_result.fetchall()

        stops_by_pattern: dict[int, list[PatternStopInfo]] = {}
        for row in stop_rows:
            stops_by_pattern.setdefault(row.pattern_id, []).append(
                PatternStopInfo(
                    sequence=row.sequence,
                    stop_id=row.stop_id,
                    name=row.name,
                    lat=float(row.lat),
                    lon=float(row.lon),
                )
            )

        detail = RouteDetail(route=route)
        for p in patterns:
            stops = stops_by_pattern.get(p.pattern_id, [])
            from_name = stops[0].name if stops else ""
            to_name = stops[-1].name if stops else ""
            headsign = p.headsign or (f"To {to_name}" if to_name else "")
            detail.directions.append(
                DirectionInfo(
                    pattern_id=p.pattern_id,
                    direction=p.direction,
                    direction_name=DIRECTION_NAMES.get(p.direction, str(p.direction)),
                    headsign=headsign,
                    from_stop_name=from_name,
                    to_stop_name=to_name,
                    stop_count=p.stop_count,
                    stops=stops,
                )
            )
        return detail

    async def _match(self, query: str, mode: str | None, limit: int) -> list[RouteInfo]:
        folded = query.casefold()
        escaped = escape_like(folded)
        async with self._dataset.session() as session:
            result = await session.execute(
                text(_MATCH_SQL),
                {
                    "q": query,
                    "folded": folded,
                    "contains": f"%{escaped}%",
                    "prefix": f"{escaped}%",
                    "mode": mode,
                    "lim": limit,
                },
            )
            return [RouteInfo.from_row(row) for row in result.fetchall()]


def _require_token(value: str | None) -> str:
    token = (value or "").strip()
    if not token:
        raise InvalidInputError("Route query must not be empty")
    return token


def _mode_value(mode: RouteMode | str | None) -> str | None:
    """Normalize a mode filter; accepts enum members or names in any case."""
    if mode is None or mode == "":
        return None
    if isinstance(mode, RouteMode):
        return mode.value
    for member in RouteMode:
        if member.value.lower() == str(mode).strip().lower():
            return member.value
    msg = f"Unknown mode {mode!r}; expected one of {[m.value for m in RouteMode]}"
    raise InvalidInputError(msg)
