"""Journey planner result types.

Every result carries an explicit ``kind`` so callers can tell direct
options, transfer options and the no-connection outcome apart without
inspecting which fields happen to be present.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Union

if TYPE_CHECKING:
    from transit_planner.services.lookup.stops import StopInfo

PlanKind = Literal["direct", "transfer", "none"]


@dataclass(frozen=True)
class DirectRoute:
    """A single pattern that visits the origin before the destination."""

    pattern_id: int
    route_id: str
    short_name: str
    long_name: str
    mode: str
    color: str | None
    direction: int
    headsign: str
    from_sequence: int
    to_sequence: int
    kind: Literal["direct"] = "direct"

    @property
    def stops_between(self) -> int:
        return self.to_sequence - self.from_sequence

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "stops_between": self.stops_between}


@dataclass(frozen=True)
class TransferLeg:
    pattern_id: int
    route_id: str
    short_name: str
    long_name: str
    mode: str
    color: str | None
    direction: int
    headsign: str
    board_stop_id: str
    alight_stop_id: str
    stops_between: int


@dataclass(frozen=True)
class TransferRoute:
    """Two legs on different routes joined at a shared stop."""

    first_leg: TransferLeg
    second_leg: TransferLeg
    transfer_stop_id: str
    transfer_stop_name: str
    kind: Literal["transfer"] = "transfer"

    @property
    def total_stops(self) -> int:
        return self.first_leg.stops_between + self.second_leg.stops_between

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "transfer_stop_id": self.transfer_stop_id,
            "transfer_stop_name": self.transfer_stop_name,
            "total_stops": self.total_stops,
            "legs": [asdict(self.first_leg), asdict(self.second_leg)],
        }


JourneyOption = Union[DirectRoute, TransferRoute]


@dataclass
class JourneyPlan:
    """Outcome of planning between two resolved stops."""

    kind: PlanKind
    from_stop: StopInfo
    to_stop: StopInfo
    options: list[JourneyOption] = field(default_factory=list)
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "from": self.from_stop.to_dict(),
            "to": self.to_stop.to_dict(),
            "options": [option.to_dict() for option in self.options],
            "reason": self.reason,
        }
