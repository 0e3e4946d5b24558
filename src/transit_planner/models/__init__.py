"""SQLAlchemy models for the transit pattern dataset."""

from transit_planner.models.base import Base
from transit_planner.models.transit import (
    DIRECTION_NAMES,
    DatasetMeta,
    DirectionPattern,
    PatternStop,
    Route,
    RouteMode,
    Stop,
    StopKind,
    StopRouteIndex,
)

__all__ = [
    "DIRECTION_NAMES",
    "Base",
    "DatasetMeta",
    "DirectionPattern",
    "PatternStop",
    "Route",
    "RouteMode",
    "Stop",
    "StopKind",
    "StopRouteIndex",
]
