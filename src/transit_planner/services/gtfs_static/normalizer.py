"""GTFS data normalizer - cleans and converts raw CSV rows.

Normalization is lenient: only a missing identifier rejects a row. Malformed
numeric fields fall back to defaults so a partially broken feed still builds.
"""

from __future__ import annotations

import math
from typing import Any

from transit_planner.logging import get_logger
from transit_planner.models import RouteMode, StopKind

logger = get_logger(__name__)

# Basic GTFS route_type values
_BASIC_ROUTE_TYPES: dict[int, RouteMode] = {
    0: RouteMode.TRAM,
    1: RouteMode.METRO,
    2: RouteMode.RAIL,
    3: RouteMode.BUS,
    4: RouteMode.FERRY,
    5: RouteMode.TRAM,  # cable tram
    7: RouteMode.RAIL,  # funicular
    11: RouteMode.BUS,  # trolleybus
    12: RouteMode.METRO,  # monorail
}

# Extended (Google) route types, by hundreds block
_EXTENDED_ROUTE_TYPES: dict[int, RouteMode] = {
    1: RouteMode.RAIL,
    2: RouteMode.BUS,
    4: RouteMode.METRO,
    7: RouteMode.BUS,
    9: RouteMode.TRAM,
    10: RouteMode.FERRY,
    12: RouteMode.FERRY,
}


class NormalizationError(Exception):
    """Raised when a row cannot be normalized."""


def route_mode(route_type: Any) -> RouteMode:
    """Map a GTFS route_type to a transport mode, defaulting to Bus."""
    value = coerce_int(route_type, default=-1)
    if value in _BASIC_ROUTE_TYPES:
        return _BASIC_ROUTE_TYPES[value]
    if value >= 100:
        return _EXTENDED_ROUTE_TYPES.get(value // 100, RouteMode.BUS)
    return RouteMode.BUS


class GtfsNormalizer:
    """Normalizes raw GTFS CSV rows into database-ready dicts."""

    @staticmethod
    def normalize_stop(row: dict[str, Any]) -> dict[str, Any]:
        """Normalize a stops.txt row.

        Returns:
            Dict with keys: stop_id, name, lat, lon, kind.

        Raises:
            NormalizationError: If stop_id is missing.
        """
        stop_id = _clean_str(row.get("stop_id"))
        if not stop_id:
            raise NormalizationError("Missing stop_id")

        location_type = coerce_int(row.get("location_type"))
        return {
            "stop_id": stop_id,
            "name": _clean_str(row.get("stop_name")),
            "lat": coerce_float(row.get("stop_lat")),
            "lon": coerce_float(row.get("stop_lon")),
            "kind": (StopKind.STATION if location_type == 1 else StopKind.STOP).value,
        }

    @staticmethod
    def normalize_route(row: dict[str, Any]) -> dict[str, Any]:
        """Normalize a routes.txt row.

        Returns:
            Dict with keys: route_id, short_name, long_name, mode, color.

        Raises:
            NormalizationError: If route_id is missing.
        """
        route_id = _clean_str(row.get("route_id"))
        if not route_id:
            raise NormalizationError("Missing route_id")

        color = _clean_str(row.get("route_color")).lstrip("#")
        return {
            "route_id": route_id,
            "short_name": _clean_str(row.get("route_short_name")),
            "long_name": _clean_str(row.get("route_long_name")),
            "mode": route_mode(row.get("route_type")).value,
            "color": color.upper() or None,
        }

    @staticmethod
    def normalize_trip(row: dict[str, Any]) -> dict[str, Any]:
        """Normalize a trips.txt row.

        Returns:
            Dict with keys: trip_id, route_id, direction, headsign.

        Raises:
            NormalizationError: If trip_id or route_id is missing.
        """
        trip_id = _clean_str(row.get("trip_id"))
        route_id = _clean_str(row.get("route_id"))
        direction_str = _clean_str(row.get("direction_id"))

        if not trip_id:
            raise NormalizationError("Missing trip_id")
        if not route_id:
            raise NormalizationError(f"Missing route_id for trip_id={trip_id}")

        # direction_id is optional in GTFS, default to 0
        direction = 0
        if direction_str:
            direction = coerce_int(direction_str, default=-1)
            if direction not in (0, 1):
                logger.warning(
                    "Invalid direction_id, defaulting to 0",
                    trip_id=trip_id,
                    direction_id=direction_str,
                )
                direction = 0

        return {
            "trip_id": trip_id,
            "route_id": route_id,
            "direction": direction,
            "headsign": _clean_str(row.get("trip_headsign")),
        }

    @staticmethod
    def normalize_stop_time(row: dict[str, Any]) -> dict[str, Any]:
        """Normalize a stop_times.txt row.

        Returns:
            Dict with keys: trip_id, stop_id, sequence.

        Raises:
            NormalizationError: If trip_id or stop_id is missing.
        """
        trip_id = _clean_str(row.get("trip_id"))
        stop_id = _clean_str(row.get("stop_id"))

        if not trip_id:
            raise NormalizationError("Missing trip_id in stop_times")
        if not stop_id:
            raise NormalizationError(f"Missing stop_id in stop_times for trip_id={trip_id}")

        return {
            "trip_id": trip_id,
            "stop_id": stop_id,
            "sequence": coerce_int(row.get("stop_sequence")),
        }


def coerce_int(value: Any, default: int = 0) -> int:
    """Parse an integer field, returning ``default`` when malformed."""
    text = _clean_str(value)
    if not text:
        return default
    try:
        return int(text)
    except ValueError:
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            return default


def coerce_float(value: Any, default: float = 0.0) -> float:
    """Parse a float field, returning ``default`` when malformed."""
    text = _clean_str(value)
    if not text:
        return default
    try:
        number = float(text)
    except ValueError:
        return default
    return number if math.isfinite(number) else default


def _clean_str(value: Any) -> str:
    """Trim whitespace and stray quotes, return empty string for None."""
    if value is None:
        return ""
    return str(value).strip().strip('"').strip()
