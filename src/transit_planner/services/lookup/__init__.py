"""Route and stop lookups over a built dataset."""

from transit_planner.services.lookup.routes import RouteDetail, RouteInfo, RouteLookup
from transit_planner.services.lookup.stats import dataset_stats
from transit_planner.services.lookup.stops import NearbyStop, StopInfo, StopLookup, StopRoutes

__all__ = [
    "NearbyStop",
    "RouteDetail",
    "RouteInfo",
    "RouteLookup",
    "StopInfo",
    "StopLookup",
    "StopRoutes",
    "dataset_stats",
]
