"""Tests for GtfsParser - CSV column validation and streaming."""

from __future__ import annotations

import pytest

from transit_planner.services.gtfs_static.parser import GtfsParser, MissingColumnError
from transit_planner.services.gtfs_static.reader import GtfsZipReader

from .fixtures.gtfs_fixture import build_gtfs_zip


class TestGtfsParser:
    """Tests for CSV parsing and column validation."""

    def test_parse_stops_yields_rows(self) -> None:
        with GtfsZipReader(build_gtfs_zip()) as reader:
            rows = list(GtfsParser(reader).parse_stops())

        assert len(rows) == 17
        assert rows[0]["stop_id"] == "M_RSH"
        assert rows[0]["stop_name"] == "Rashidiya Metro Station"

    def test_parse_routes_yields_rows(self) -> None:
        with GtfsZipReader(build_gtfs_zip()) as reader:
            rows = list(GtfsParser(reader).parse_routes())

        assert len(rows) == 10
        assert rows[0]["route_id"] == "MRed"
        assert rows[0]["route_short_name"] == "Red"

    def test_parse_trips_yields_rows(self) -> None:
        with GtfsZipReader(build_gtfs_zip()) as reader:
            rows = list(GtfsParser(reader).parse_trips())

        assert len(rows) == 10
        assert rows[0]["trip_id"] == "MRED_0"

    def test_parse_stop_times_yields_rows(self) -> None:
        with GtfsZipReader(build_gtfs_zip()) as reader:
            rows = list(GtfsParser(reader).parse_stop_times())

        assert len(rows) == 30
        assert rows[0]["trip_id"] == "MRED_0"
        assert rows[0]["stop_sequence"] == "1"

    def test_missing_identifier_column_raises(self) -> None:
        bad_stops = "stop_name,stop_lat,stop_lon\nNowhere,25.0,55.0\n"
        with GtfsZipReader(build_gtfs_zip(stops=bad_stops)) as reader:
            with pytest.raises(MissingColumnError, match="stop_id"):
                list(GtfsParser(reader).parse_stops())

    def test_stop_times_missing_trip_id_raises(self) -> None:
        bad_st = "stop_id,stop_sequence\nM_GLD,1\n"
        with GtfsZipReader(build_gtfs_zip(stop_times=bad_st)) as reader:
            with pytest.raises(MissingColumnError, match="trip_id"):
                list(GtfsParser(reader).parse_stop_times())

    def test_optional_columns_may_be_absent(self) -> None:
        minimal_stops = "stop_id\nS1\n"
        with GtfsZipReader(build_gtfs_zip(stops=minimal_stops)) as reader:
            rows = list(GtfsParser(reader).parse_stops())
        assert rows == [{"stop_id": "S1"}]

    def test_empty_csv_parses_zero_rows(self) -> None:
        with GtfsZipReader(build_gtfs_zip(stops="stop_id,stop_name,stop_lat,stop_lon\n")) as reader:
            rows = list(GtfsParser(reader).parse_stops())
        assert rows == []

    def test_absent_file_parses_zero_rows(self) -> None:
        with GtfsZipReader(build_gtfs_zip(exclude_files={"trips.txt"})) as reader:
            rows = list(GtfsParser(reader).parse_trips())
        assert rows == []

    def test_header_whitespace_and_quotes_stripped(self) -> None:
        stops = ' "stop_id" , stop_name \nS1,One\n'
        with GtfsZipReader(build_gtfs_zip(stops=stops)) as reader:
            rows = list(GtfsParser(reader).parse_stops())
        assert rows[0]["stop_id"] == "S1"
        assert rows[0]["stop_name"] == "One"

    def test_blank_rows_skipped(self) -> None:
        stops = "stop_id,stop_name\nS1,One\n,\nS2,Two\n"
        with GtfsZipReader(build_gtfs_zip(stops=stops)) as reader:
            rows = list(GtfsParser(reader).parse_stops())
        assert [r["stop_id"] for r in rows] == ["S1", "S2"]

    def test_extra_columns_accepted(self) -> None:
        with GtfsZipReader(build_gtfs_zip()) as reader:
            rows = list(GtfsParser(reader).parse_stops())
        assert "parent_station" in rows[0]
