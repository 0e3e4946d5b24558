"""Stop lookup: fuzzy name search, nearby stops and routes serving a stop."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import text

from transit_planner.config import get_settings
from transit_planner.logging import get_logger
from transit_planner.models import DIRECTION_NAMES, RouteMode
from transit_planner.services.errors import InvalidInputError, StopNotFoundError
from transit_planner.services.lookup.routes import escape_like

if TYPE_CHECKING:
    from transit_planner.database import TransitDataset

logger = get_logger(__name__)

METERS_PER_DEGREE = 111_000.0


@dataclass(frozen=True)
class StopInfo:
    stop_id: str
    name: str
    lat: float
    lon: float
    kind: str

    @classmethod
    def from_row(cls, row: Any) -> StopInfo:
        return cls(
            stop_id=row.stop_id,
            name=row.name or "",
            lat=float(row.lat),
            lon=float(row.lon),
            kind=row.kind,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NearbyStop:
    stop: StopInfo
    distance_m: float

    def to_dict(self) -> dict[str, Any]:
        return {**self.stop.to_dict(), "distance_m": self.distance_m}


@dataclass(frozen=True)
class StopRouteEntry:
    route_id: str
    short_name: str
    long_name: str
    mode: str
    color: str | None
    direction: int
    direction_name: str
    headsign: str


@dataclass
class StopRoutes:
    stop: StopInfo
    routes: list[StopRouteEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stop": self.stop.to_dict(),
            "routes": [asdict(r) for r in self.routes],
        }


def bounding_box(lat: float, lon: float, radius_m: float) -> tuple[float, float, float, float]:
    """Return (lat_min, lat_max, lon_min, lon_max) around a point.

    Equirectangular approximation, fine for city-scale radii.
    """
    lat_delta = radius_m / METERS_PER_DEGREE
    lon_delta = radius_m / max(1.0, METERS_PER_DEGREE * math.cos(math.radians(lat)))
    return (
        lat - lat_delta,
        lat + lat_delta,
        lon - lon_delta,
        lon + lon_delta,
    )


def planar_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Approximate distance in metres with longitude scaled at ``lat1``."""
    dy = (lat2 - lat1) * METERS_PER_DEGREE
    dx = (lon2 - lon1) * METERS_PER_DEGREE * math.cos(math.radians(lat1))
    return math.hypot(dx, dy)


class StopLookup:
    """Stop name search and geographic lookups over the dataset."""

    def __init__(self, dataset: TransitDataset) -> None:
        self._dataset = dataset
        self._settings = get_settings()

    @property
    def default_radius_m(self) -> float:
        return self._settings.default_nearby_radius_m

    async def get_stop(self, stop_id: str) -> StopInfo:
        """Fetch one stop.

        Raises:
            InvalidInputError: If the id is blank.
            StopNotFoundError: If no stop has this id.
        """
        stop_id = (stop_id or "").strip()
        if not stop_id:
            raise InvalidInputError("Stop id must not be empty")

        async with self._dataset.session() as session:
            result = await session.execute(
                text("SELECT stop_id, name, lat, lon, kind FROM stops WHERE stop_id = :stop_id"),
                {"stop_id": stop_id},
            )
            row = result.fetchone()
        if row is None:
            raise StopNotFoundError(stop_id)
        return StopInfo.from_row(row)

    async def search_stops(self, query: str, min_length: int | None = None) -> list[StopInfo]:
        """Case-insensitive search requiring every query word in the stop name.

        Words may appear in any order. When a multi-word query finds nothing,
        the first word is searched alone. Results rank names starting with
        the first word, then names containing the whole phrase, then the
        rest; shorter names first within a tier.
        """
        min_length = min_length if min_length is not None else self._settings.search_min_length
        normalized = (query or "").strip().casefold()
        if len(normalized) < min_length:
            msg = f"Search query must be at least {min_length} characters"
            raise InvalidInputError(msg)

        tokens = normalized.split()
        stops = await self._search(tokens)
        if not stops and len(tokens) > 1:
            logger.debug("No stop matched all words, retrying first word", query=normalized)
            stops = await self._search(tokens[:1])
        return stops

    async def _search(self, tokens: list[str]) -> list[StopInfo]:
        conditions = " AND ".join(
            f"casefold(name) LIKE :t{i} ESCAPE '\\'" for i in range(len(tokens))
        )
        params: dict[str, Any] = {f"t{i}": f"%{escape_like(tok)}%" for i, tok in enumerate(tokens)}
        params["first_prefix"] = f"{escape_like(tokens[0])}%"
        params["phrase"] = f"%{escape_like(' '.join(tokens))}%"
        params["lim"] = self._settings.search_result_limit

        async with self._dataset.session() as session:
            result = await session.execute(
                text(f"""
                    SELECT stop_id, name, lat, lon, kind
                    FROM stops
                    WHERE {conditions}
                    ORDER BY
                        CASE
                            WHEN casefold(name) LIKE :first_prefix ESCAPE '\\' THEN 0
                            WHEN casefold(name) LIKE :phrase ESCAPE '\\' THEN 1
                            ELSE 2
                        END,
                        LENGTH(name),
                        name
                    LIMIT :lim
                """),
                params,
            )
            return [StopInfo.from_row(row) for row in result.fetchall()]

    async def nearby_stops(
        self,
        lat: float,
        lon: float,
        radius_m: float | None = None,
    ) -> list[NearbyStop]:
        """Stops inside the bounding box around a point, nearest first."""
        radius_m = radius_m if radius_m is not None else self._settings.default_nearby_radius_m
        if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
            msg = f"Coordinates out of range: lat={lat}, lon={lon}"
            raise InvalidInputError(msg)
        if not (0 < radius_m <= self._settings.max_nearby_radius_m):
            msg = f"radius_m must be in (0, {self._settings.max_nearby_radius_m:g}]"
            raise InvalidInputError(msg)

        lat_min, lat_max, lon_min, lon_max = bounding_box(lat, lon, radius_m)
        lon_scale = math.cos(math.radians(lat)) ** 2

        async with self._dataset.session() as session:
            result = await session.execute(
                text("""
                    SELECT stop_id, name, lat, lon, kind
                    FROM stops
                    WHERE lat BETWEEN :lat_min AND :lat_max
                      AND lon BETWEEN :lon_min AND :lon_max
                    ORDER BY
                        (lat - :lat) * (lat - :lat)
                        + (lon - :lon) * (lon - :lon) * :lon_scale,
                        stop_id
                    LIMIT :lim
                """),
                {
                    "lat": lat,
                    "lon": lon,
                    "lat_min": lat_min,
                    "lat_max": lat_max,
                    "lon_min": lon_min,
                    "lon_max": lon_max,
                    "lon_scale": lon_scale,
                    "lim": self._settings.nearby_result_limit,
                },
            )
            rows = result.fetchall()

        return [
            NearbyStop(
                stop=StopInfo.from_row(r),
                distance_m=round(planar_distance_m(lat, lon, float(r.lat), float(r.lon)), 1),
            )
            for r in rows
        ]

    async def routes_at_stop(self, stop_id: str) -> StopRoutes:
        """Routes and directions serving a stop, via the stop-to-route index."""
        stop = await self.get_stop(stop_id)

        async with self._dataset.session() as session:
            result = await session.execute(
                text("""
                    SELECT
                        sr.route_id,
                        sr.direction,
                        COALESCE(r.short_name, '') AS short_name,
                        COALESCE(r.long_name, '') AS long_name,
                        COALESCE(r.mode, :default_mode) AS mode,
                        r.color,
                        COALESCE(rp.headsign, '') AS headsign
                    FROM stop_routes sr
                    LEFT JOIN routes r ON r.route_id = sr.route_id
                    LEFT JOIN route_patterns rp
                        ON rp.route_id = sr.route_id AND rp.direction = sr.direction
                    WHERE sr.stop_id = :stop_id
                    ORDER BY
                        CASE WHEN COALESCE(r.short_name, '') GLOB '[0-9]*' THEN 0 ELSE 1 END,
                        CAST(COALESCE(r.short_name, '') AS INTEGER),
                        COALESCE(r.short_name, ''),
                        sr.route_id,
                        sr.direction
                """),
                {"stop_id": stop.stop_id, "default_mode": RouteMode.BUS.value},
            )
            rows = result.fetchall()

        return StopRoutes(
            stop=stop,
            routes=[
                StopRouteEntry(
                    route_id=r.route_id,
                    short_name=r.short_name,
                    long_name=r.long_name,
                    mode=r.mode,
                    color=r.color,
                    direction=r.direction,
                    direction_name=DIRECTION_NAMES.get(r.direction, str(r.direction)),
                    headsign=r.headsign,
                )
                for r in rows
            ],
        )
