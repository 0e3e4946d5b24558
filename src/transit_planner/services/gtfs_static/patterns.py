"""Pattern builder - compiles trips and stop-times into direction patterns.

Each (route, direction) group of trips is collapsed to one representative
trip chosen by a selection policy. The representative's stop-times become the
pattern's ordered stop list, and every stop on it is indexed against the
route and direction for reverse lookup.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from transit_planner.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)


@dataclass(frozen=True)
class TripRecord:
    trip_id: str
    route_id: str
    direction: int = 0
    headsign: str = ""


@dataclass(frozen=True)
class StopTimeRecord:
    trip_id: str
    stop_id: str
    sequence: int = 0


@dataclass(frozen=True)
class PatternRecord:
    pattern_id: int
    route_id: str
    direction: int
    headsign: str
    first_stop_id: str
    last_stop_id: str
    stop_count: int


@dataclass(frozen=True)
class PatternStopRecord:
    pattern_id: int
    stop_id: str
    sequence: int


@dataclass(frozen=True)
class StopRouteRecord:
    stop_id: str
    route_id: str
    direction: int


@dataclass
class PatternSet:
    """Output of one pattern build."""

    policy: str
    patterns: list[PatternRecord] = field(default_factory=list)
    pattern_stops: list[PatternStopRecord] = field(default_factory=list)
    stop_routes: list[StopRouteRecord] = field(default_factory=list)
    trip_groups: int = 0
    skipped_groups: list[tuple[str, int]] = field(default_factory=list)
    duplicate_sequences: int = 0

    def counts(self) -> dict[str, Any]:
        return {
            "trip_groups": self.trip_groups,
            "patterns": len(self.patterns),
            "pattern_stops": len(self.pattern_stops),
            "stop_routes": len(self.stop_routes),
            "skipped_groups": len(self.skipped_groups),
            "duplicate_sequences": self.duplicate_sequences,
        }


class PatternSelectionPolicy(Protocol):
    """Chooses the representative trip of a (route, direction) group."""

    name: str

    def candidate_trips(self, group: list[TripRecord]) -> list[TripRecord]:
        """Trips whose stop-times must be retained to make the choice."""
        ...

    def choose(
        self,
        group: list[TripRecord],
        stops_by_trip: dict[str, list[StopTimeRecord]],
    ) -> TripRecord:
        ...


class FirstEncounteredPolicy:
    """The first trip seen for the group represents it."""

    name = "first"

    def candidate_trips(self, group: list[TripRecord]) -> list[TripRecord]:
        return group[:1]

    def choose(
        self,
        group: list[TripRecord],
        stops_by_trip: dict[str, list[StopTimeRecord]],
    ) -> TripRecord:
        return group[0]


class MostCommonSequencePolicy:
    """The trip whose stop sequence occurs most often represents the group.

    Ties go to the sequence whose first trip was encountered earliest. Trips
    without stop-times never win over trips that have them.
    """

    name = "most_common"

    def candidate_trips(self, group: list[TripRecord]) -> list[TripRecord]:
        return group

    def choose(
        self,
        group: list[TripRecord],
        stops_by_trip: dict[str, list[StopTimeRecord]],
    ) -> TripRecord:
        sequences: dict[str, tuple[str, ...]] = {}
        for trip in group:
            rows = stops_by_trip.get(trip.trip_id)
            if rows:
                sequences[trip.trip_id] = tuple(row.stop_id for row in rows)
        if not sequences:
            return group[0]

        counter = Counter(sequences.values())
        best_count = max(counter.values())
        for trip in group:
            seq = sequences.get(trip.trip_id)
            if seq is not None and counter[seq] == best_count:
                if best_count > 1 and len(counter) > 1:
                    logger.debug(
                        "Majority stop sequence chosen",
                        route_id=trip.route_id,
                        direction=trip.direction,
                        trips=best_count,
                        variants=len(counter),
                    )
                return trip
        return group[0]


POLICIES: dict[str, type[FirstEncounteredPolicy] | type[MostCommonSequencePolicy]] = {
    FirstEncounteredPolicy.name: FirstEncounteredPolicy,
    MostCommonSequencePolicy.name: MostCommonSequencePolicy,
}


def get_policy(name: str) -> PatternSelectionPolicy:
    """Look up a selection policy by name.

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return POLICIES[name]()
    except KeyError:
        msg = f"Unknown pattern selection policy: {name!r} (expected one of {sorted(POLICIES)})"
        raise ValueError(msg) from None


def _ordered_stops(rows: list[StopTimeRecord]) -> tuple[list[StopTimeRecord], int]:
    """Stable-sort by sequence, dropping rows that repeat a sequence value."""
    ordered: list[StopTimeRecord] = []
    dropped = 0
    for row in sorted(rows, key=lambda r: r.sequence):
        if ordered and ordered[-1].sequence == row.sequence:
            dropped += 1
            continue
        ordered.append(row)
    return ordered, dropped


def build_patterns(
    trips: Iterable[TripRecord],
    stop_times: Iterable[StopTimeRecord],
    policy: PatternSelectionPolicy | None = None,
) -> PatternSet:
    """Build direction patterns, pattern stops and the stop-to-route index.

    ``stop_times`` is consumed once and only rows belonging to candidate
    trips are kept, so it can be a lazy stream over a large feed.
    """
    policy = policy or FirstEncounteredPolicy()
    result = PatternSet(policy=policy.name)

    groups: dict[tuple[str, int], list[TripRecord]] = {}
    for trip in trips:
        groups.setdefault((trip.route_id, trip.direction), []).append(trip)
    result.trip_groups = len(groups)

    candidate_ids = {
        trip.trip_id for group in groups.values() for trip in policy.candidate_trips(group)
    }

    raw_by_trip: dict[str, list[StopTimeRecord]] = {}
    for row in stop_times:
        if row.trip_id in candidate_ids:
            raw_by_trip.setdefault(row.trip_id, []).append(row)

    stops_by_trip: dict[str, list[StopTimeRecord]] = {}
    dropped_by_trip: dict[str, int] = {}
    for trip_id, rows in raw_by_trip.items():
        stops_by_trip[trip_id], dropped_by_trip[trip_id] = _ordered_stops(rows)

    seen_index: set[tuple[str, str, int]] = set()
    next_pattern_id = 1
    for (route_id, direction), group in groups.items():
        representative = policy.choose(group, stops_by_trip)
        ordered = stops_by_trip.get(representative.trip_id, [])
        if not ordered:
            result.skipped_groups.append((route_id, direction))
            logger.warning(
                "Representative trip has no stop times, skipping group",
                route_id=route_id,
                direction=direction,
                trip_id=representative.trip_id,
            )
            continue

        dropped = dropped_by_trip.get(representative.trip_id, 0)
        if dropped:
            result.duplicate_sequences += dropped
            logger.warning(
                "Dropped stop times repeating a sequence value",
                trip_id=representative.trip_id,
                dropped=dropped,
            )

        pattern_id = next_pattern_id
        next_pattern_id += 1
        result.patterns.append(
            PatternRecord(
                pattern_id=pattern_id,
                route_id=route_id,
                direction=direction,
                headsign=representative.headsign,
                first_stop_id=ordered[0].stop_id,
                last_stop_id=ordered[-1].stop_id,
                stop_count=len(ordered),
            )
        )
        for row in ordered:
            result.pattern_stops.append(
                PatternStopRecord(pattern_id=pattern_id, stop_id=row.stop_id, sequence=row.sequence)
            )
            key = (row.stop_id, route_id, direction)
            if key not in seen_index:
                seen_index.add(key)
                result.stop_routes.append(StopRouteRecord(*key))

    logger.info("Patterns built", policy=policy.name, **result.counts())
    return result
