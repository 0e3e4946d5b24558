"""Tests for StopLookup against the sample dataset."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from transit_planner.services.errors import InvalidInputError, StopNotFoundError
from transit_planner.services.lookup.stops import StopLookup, bounding_box, planar_distance_m

if TYPE_CHECKING:
    from transit_planner.database import TransitDataset


class TestGeometry:
    """Tests for the planar distance helpers."""

    def test_bounding_box_contains_point(self) -> None:
        lat_min, lat_max, lon_min, lon_max = bounding_box(25.27, 55.30, 500)
        assert lat_min < 25.27 < lat_max
        assert lon_min < 55.30 < lon_max
        # longitude degrees are shorter away from the equator
        assert (lon_max - lon_min) > (lat_max - lat_min)

    def test_planar_distance(self) -> None:
        assert planar_distance_m(25.0, 55.0, 25.0, 55.0) == 0.0
        assert planar_distance_m(25.0, 55.0, 25.001, 55.0) == pytest.approx(111.0)


class TestGetStop:
    async def test_existing_stop(self, dataset: TransitDataset) -> None:
        stop = await StopLookup(dataset).get_stop("M_GLD")
        assert stop.name == "Gold Souq Metro Station"
        assert stop.kind == "Station"

    async def test_unknown_stop(self, dataset: TransitDataset) -> None:
        with pytest.raises(StopNotFoundError, match="NOPE"):
            await StopLookup(dataset).get_stop("NOPE")

    async def test_blank_id(self, dataset: TransitDataset) -> None:
        with pytest.raises(InvalidInputError):
            await StopLookup(dataset).get_stop(" ")


class TestSearchStops:
    """Tests for word-based stop name search."""

    async def test_all_words_required(self, dataset: TransitDataset) -> None:
        stops = await StopLookup(dataset).search_stops("gold souq")
        assert [s.stop_id for s in stops] == ["B_GSOUQ", "M_GLD", "B_DGS"]

    async def test_word_order_ignored(self, dataset: TransitDataset) -> None:
        stops = await StopLookup(dataset).search_stops("souq gold")
        assert {s.stop_id for s in stops} == {"B_GSOUQ", "M_GLD", "B_DGS"}

    async def test_case_insensitive(self, dataset: TransitDataset) -> None:
        stops = await StopLookup(dataset).search_stops("GOLD SOUQ")
        assert [s.stop_id for s in stops] == ["B_GSOUQ", "M_GLD", "B_DGS"]

    async def test_falls_back_to_first_word(self, dataset: TransitDataset) -> None:
        stops = await StopLookup(dataset).search_stops("gold xyz")
        assert [s.stop_id for s in stops] == ["B_GSOUQ", "M_GLD", "B_GCREST", "B_DGS"]

    async def test_no_match(self, dataset: TransitDataset) -> None:
        assert await StopLookup(dataset).search_stops("zzz") == []

    async def test_minimum_length(self, dataset: TransitDataset) -> None:
        lookup = StopLookup(dataset)
        with pytest.raises(InvalidInputError, match="at least 2"):
            await lookup.search_stops("g")
        assert await lookup.search_stops("go")

    async def test_wildcards_match_literally(self, dataset: TransitDataset) -> None:
        assert await StopLookup(dataset).search_stops("%%") == []


class TestNearbyStops:
    """Tests for radius lookup."""

    async def test_nearest_first(self, dataset: TransitDataset) -> None:
        nearby = await StopLookup(dataset).nearby_stops(25.2710, 55.2970, 200)
        assert [n.stop.stop_id for n in nearby] == ["M_GLD", "B_GSOUQ"]
        assert nearby[0].distance_m == 0.0
        assert 70 < nearby[1].distance_m < 80

    async def test_larger_radius_finds_more(self, dataset: TransitDataset) -> None:
        nearby = await StopLookup(dataset).nearby_stops(25.2710, 55.2970, 1000)
        ids = [n.stop.stop_id for n in nearby]
        assert ids[:2] == ["M_GLD", "B_GSOUQ"]
        assert "B_DGS" in ids
        distances = [n.distance_m for n in nearby]
        assert distances == sorted(distances)

    async def test_empty_area(self, dataset: TransitDataset) -> None:
        assert await StopLookup(dataset).nearby_stops(0.0, 0.0, 500) == []

    async def test_default_radius(self, dataset: TransitDataset) -> None:
        lookup = StopLookup(dataset)
        assert lookup.default_radius_m == 500.0
        nearby = await lookup.nearby_stops(25.2710, 55.2970)
        assert nearby

    @pytest.mark.parametrize(
        ("lat", "lon", "radius"),
        [(91.0, 55.0, 500), (25.0, 181.0, 500), (25.0, 55.0, 0), (25.0, 55.0, 50_000)],
    )
    async def test_invalid_input(
        self, dataset: TransitDataset, lat: float, lon: float, radius: float
    ) -> None:
        with pytest.raises(InvalidInputError):
            await StopLookup(dataset).nearby_stops(lat, lon, radius)

    async def test_to_dict_includes_distance(self, dataset: TransitDataset) -> None:
        nearby = await StopLookup(dataset).nearby_stops(25.2710, 55.2970, 200)
        d = nearby[0].to_dict()
        assert d["stop_id"] == "M_GLD"
        assert d["distance_m"] == 0.0


class TestRoutesAtStop:
    """Tests for the stop-to-route index."""

    async def test_routes_and_directions(self, dataset: TransitDataset) -> None:
        result = await StopLookup(dataset).routes_at_stop("M_BUR")
        assert [(r.route_id, r.direction) for r in result.routes] == [
            ("MRed", 0),
            ("MRed", 1),
            ("X28", 0),
            ("X28", 1),
        ]
        assert result.routes[0].headsign == "UAE Exchange"
        assert result.routes[1].direction_name == "Downward"

    async def test_interchange(self, dataset: TransitDataset) -> None:
        result = await StopLookup(dataset).routes_at_stop("M_IBN")
        assert [r.short_name for r in result.routes] == ["E100", "F55", "Red", "Red"]

    async def test_unserved_stop(self, dataset: TransitDataset) -> None:
        result = await StopLookup(dataset).routes_at_stop("M_EXP")
        assert result.stop.stop_id == "M_EXP"
        assert result.routes == []

    async def test_unknown_stop(self, dataset: TransitDataset) -> None:
        with pytest.raises(StopNotFoundError):
            await StopLookup(dataset).routes_at_stop("NOPE")


class TestUnicodeNames:
    """Tests for case folding beyond ASCII."""

    @pytest.mark.parametrize("query", ["école", "ÉCOLE", "École Centrale", "centrale"])
    async def test_accented_capitals(self, busy_dataset: TransitDataset, query: str) -> None:
        stops = await StopLookup(busy_dataset).search_stops(query)
        assert [s.stop_id for s in stops] == ["EC"]

    async def test_sharp_s_folds_to_ss(self, busy_dataset: TransitDataset) -> None:
        stops = await StopLookup(busy_dataset).search_stops("HAUPTSTRASSE")
        assert [s.stop_id for s in stops] == ["HBF"]


class TestResultLimits:
    """Tests for the search and nearby caps on a crowded network."""

    async def test_search_capped_at_twenty(self, busy_dataset: TransitDataset) -> None:
        stops = await StopLookup(busy_dataset).search_stops("market stop")

        assert len(stops) == 20
        assert [s.stop_id for s in stops] == [f"MKT{i:02d}" for i in range(1, 21)]

    async def test_nearby_capped_at_twenty_nearest(self, busy_dataset: TransitDataset) -> None:
        nearby = await StopLookup(busy_dataset).nearby_stops(10.0, 20.0, 1000)

        assert len(nearby) == 20
        assert [n.stop.stop_id for n in nearby] == [f"MKT{i:02d}" for i in range(1, 21)]
        distances = [n.distance_m for n in nearby]
        assert distances == sorted(distances)
