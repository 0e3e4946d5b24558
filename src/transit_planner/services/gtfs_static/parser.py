"""GTFS CSV parser with key-column validation and streaming."""

from __future__ import annotations

import csv
from typing import TYPE_CHECKING, Any

from transit_planner.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterator

    from transit_planner.services.gtfs_static.reader import GtfsFeedReader

logger = get_logger(__name__)

# Identifier columns without which a file cannot be used at all.
# Every other column is optional and defaults during normalization.
REQUIRED_COLUMNS: dict[str, set[str]] = {
    "stops.txt": {"stop_id"},
    "routes.txt": {"route_id"},
    "trips.txt": {"route_id", "trip_id"},
    "stop_times.txt": {"trip_id", "stop_id"},
}


class MissingColumnError(Exception):
    """Raised when a required CSV column is missing."""


def _clean_header(name: str) -> str:
    return name.strip().strip('"')


class GtfsParser:
    """Parses GTFS CSV files with column validation and streaming iteration."""

    def __init__(self, reader: GtfsFeedReader) -> None:
        self._reader = reader

    def parse_file(self, filename: str) -> Iterator[dict[str, Any]]:
        """Stream the rows of one feed file as dicts keyed by column name.

        Absent and header-only files produce no rows. Blank lines are skipped
        and a row count is logged once the file is exhausted.

        Raises:
            MissingColumnError: If an identifier column is absent from the header.
        """
        if not self._reader.has_file(filename):
            logger.warning("GTFS file absent, yielding no rows", filename=filename)
            return

        rows = csv.DictReader(self._reader.open_file(filename))
        header = rows.fieldnames
        if not header:
            logger.warning("Empty GTFS file", filename=filename)
            return

        rows.fieldnames = columns = [_clean_header(name) for name in header]
        absent = REQUIRED_COLUMNS.get(filename, set()).difference(columns)
        if absent:
            msg = f"Missing required columns in {filename}: {sorted(absent)}"
            raise MissingColumnError(msg)

        count = 0
        for row in rows:
            if any(row.values()):
                count += 1
                yield row
        logger.info("Parsed GTFS file", filename=filename, rows=count, columns=len(columns))

    def parse_stops(self) -> Iterator[dict[str, Any]]:
        """Parse stops.txt."""
        return self.parse_file("stops.txt")

    def parse_routes(self) -> Iterator[dict[str, Any]]:
        """Parse routes.txt."""
        return self.parse_file("routes.txt")

    def parse_trips(self) -> Iterator[dict[str, Any]]:
        """Parse trips.txt."""
        return self.parse_file("trips.txt")

    def parse_stop_times(self) -> Iterator[dict[str, Any]]:
        """Parse stop_times.txt."""
        return self.parse_file("stop_times.txt")
