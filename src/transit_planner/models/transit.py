"""Pattern dataset models.

The dataset is written once by the importer and opened read-only by the API.
There are no foreign keys: a pattern may reference a stop or route that the
feed never defined, and queries degrade to blank fields in that case.
"""

from __future__ import annotations

import enum

from sqlalchemy import Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from transit_planner.models.base import Base


class RouteMode(str, enum.Enum):
    """Transport category of a route."""

    BUS = "Bus"
    METRO = "Metro"
    TRAM = "Tram"
    RAIL = "Rail"
    FERRY = "Ferry"


class StopKind(str, enum.Enum):
    """Boarding point type (GTFS location_type 0 or 1)."""

    STOP = "Stop"
    STATION = "Station"


DIRECTION_NAMES = {0: "Upward", 1: "Downward"}


class Route(Base):
    """A bus or metro line, independent of direction."""

    __tablename__ = "routes"

    route_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    short_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    long_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    mode: Mapped[str] = mapped_column(String(16), nullable=False, default=RouteMode.BUS.value)
    color: Mapped[str | None] = mapped_column(String(16), nullable=True)

    __table_args__ = (
        Index("ix_routes_short_name", "short_name"),
        Index("ix_routes_mode", "mode"),
    )


class Stop(Base):
    """A bus stop or metro station."""

    __tablename__ = "stops"

    stop_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    lon: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default=StopKind.STOP.value)

    __table_args__ = (
        Index("ix_stops_name", "name"),
        Index("ix_stops_lat_lon", "lat", "lon"),
    )


class DirectionPattern(Base):
    """Canonical ordered stop sequence of one route in one direction."""

    __tablename__ = "route_patterns"

    pattern_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    route_id: Mapped[str] = mapped_column(String(64), nullable=False)
    direction: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    headsign: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    first_stop_id: Mapped[str] = mapped_column(String(64), nullable=False)
    last_stop_id: Mapped[str] = mapped_column(String(64), nullable=False)
    stop_count: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("route_id", "direction", name="uq_route_patterns_route_direction"),
        Index("ix_route_patterns_route_id", "route_id"),
    )


class PatternStop(Base):
    """Position of one stop within a pattern."""

    __tablename__ = "pattern_stops"

    pattern_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer, primary_key=True)
    stop_id: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (Index("ix_pattern_stops_stop_id", "stop_id"),)


class StopRouteIndex(Base):
    """Denormalized (stop, route, direction) lookup derived from pattern stops."""

    __tablename__ = "stop_routes"

    stop_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    route_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    direction: Mapped[int] = mapped_column(Integer, primary_key=True)

    __table_args__ = (Index("ix_stop_routes_route_id", "route_id"),)


class DatasetMeta(Base):
    """Build metadata (feed hash, build time, counts) as key/value pairs."""

    __tablename__ = "dataset_meta"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(String(255), nullable=False, default="")
