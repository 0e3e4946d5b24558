"""Tests for JourneyPlanner against the sample dataset."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from transit_planner.services.errors import InvalidInputError, StopNotFoundError
from transit_planner.services.planner import JourneyPlanner

if TYPE_CHECKING:
    from transit_planner.database import TransitDataset


class TestFindDirect:
    """Tests for single-pattern connections."""

    async def test_forward_order_only(self, dataset: TransitDataset) -> None:
        planner = JourneyPlanner(dataset)

        outbound = await planner.find_direct("M_GLD", "M_BKM")
        inbound = await planner.find_direct("M_BKM", "M_GLD")

        assert [(r.route_id, r.direction, r.stops_between) for r in outbound] == [("X28", 0, 1)]
        assert [(r.route_id, r.direction, r.stops_between) for r in inbound] == [("X28", 1, 1)]
        assert outbound[0].pattern_id != inbound[0].pattern_id

    async def test_sequence_gap_from_feed_values(self, dataset: TransitDataset) -> None:
        routes = await JourneyPlanner(dataset).find_direct("M_IBN", "B_ABU")
        assert len(routes) == 1
        assert routes[0].route_id == "DXB_F55"
        assert routes[0].short_name == "F55"
        assert routes[0].from_sequence == 5
        assert routes[0].to_sequence == 15
        assert routes[0].stops_between == 10

    async def test_no_direct_connection(self, dataset: TransitDataset) -> None:
        assert await JourneyPlanner(dataset).find_direct("B_GSOUQ", "M_UAE") == []

    async def test_unknown_stop(self, dataset: TransitDataset) -> None:
        with pytest.raises(StopNotFoundError, match="NONEXISTENT_ID"):
            await JourneyPlanner(dataset).find_direct("NONEXISTENT_ID", "M_BUR")

    async def test_same_stop_rejected(self, dataset: TransitDataset) -> None:
        with pytest.raises(InvalidInputError, match="different"):
            await JourneyPlanner(dataset).find_direct("M_BUR", "M_BUR")

    async def test_blank_stop_rejected(self, dataset: TransitDataset) -> None:
        with pytest.raises(InvalidInputError):
            await JourneyPlanner(dataset).find_direct("", "M_BUR")

    async def test_to_dict(self, dataset: TransitDataset) -> None:
        routes = await JourneyPlanner(dataset).find_direct("M_RSH", "M_UAE")
        d = routes[0].to_dict()
        assert d["kind"] == "direct"
        assert d["route_id"] == "MRed"
        assert d["stops_between"] == 3
        assert d["headsign"] == "UAE Exchange"


class TestFindTransfer:
    """Tests for one-change connections."""

    async def test_feeder_pair(self, dataset: TransitDataset) -> None:
        transfers = await JourneyPlanner(dataset).find_transfer("B_GHU", "B_ABU")

        assert len(transfers) == 1
        option = transfers[0]
        assert option.transfer_stop_id == "M_IBN"
        assert option.transfer_stop_name == "Ibn Battuta Metro Station"
        assert option.first_leg.route_id == "E100"
        assert option.second_leg.route_id == "DXB_F55"
        assert option.first_leg.board_stop_id == "B_GHU"
        assert option.first_leg.alight_stop_id == "M_IBN"
        assert option.second_leg.board_stop_id == "M_IBN"
        assert option.second_leg.alight_stop_id == "B_ABU"
        assert option.total_stops == 12

    async def test_bus_to_metro(self, dataset: TransitDataset) -> None:
        transfers = await JourneyPlanner(dataset).find_transfer("B_GHU", "M_UAE")
        assert [(t.first_leg.route_id, t.second_leg.route_id) for t in transfers] == [
            ("E100", "MRed")
        ]
        assert transfers[0].transfer_stop_id == "M_IBN"

    async def test_same_route_pairs_excluded(self, dataset: TransitDataset) -> None:
        assert await JourneyPlanner(dataset).find_transfer("M_BKM", "B_GSOUQ") == []

    async def test_transfer_stop_never_an_endpoint(self, dataset: TransitDataset) -> None:
        transfers = await JourneyPlanner(dataset).find_transfer("B_GSOUQ", "M_IBN")
        for option in transfers:
            assert option.transfer_stop_id not in {"B_GSOUQ", "M_IBN"}
            assert option.first_leg.route_id != option.second_leg.route_id

    async def test_to_dict(self, dataset: TransitDataset) -> None:
        transfers = await JourneyPlanner(dataset).find_transfer("B_GHU", "B_ABU")
        d = transfers[0].to_dict()
        assert d["kind"] == "transfer"
        assert d["transfer_stop_id"] == "M_IBN"
        assert [leg["route_id"] for leg in d["legs"]] == ["E100", "DXB_F55"]


class TestPlan:
    """Tests for the direct-then-transfer plan."""

    async def test_direct_preferred(self, dataset: TransitDataset) -> None:
        plan = await JourneyPlanner(dataset).plan("M_GLD", "M_BUR")
        assert plan.kind == "direct"
        assert plan.options[0].stops_between == 2
        assert plan.reason is None

    async def test_transfer_when_no_direct(self, dataset: TransitDataset) -> None:
        plan = await JourneyPlanner(dataset).plan("B_GSOUQ", "M_UAE")

        assert plan.kind == "transfer"
        option = plan.options[0]
        assert option.transfer_stop_id == "M_BUR"
        assert option.first_leg.route_id == "X28"
        assert option.second_leg.route_id == "MRed"
        assert option.first_leg.stops_between == 3
        assert option.second_leg.stops_between == 2

    async def test_no_connection(self, dataset: TransitDataset) -> None:
        plan = await JourneyPlanner(dataset).plan("B_GHU", "B_ISO")

        assert plan.kind == "none"
        assert plan.options == []
        assert plan.reason == (
            "No direct or single-transfer connection from Al Ghubaiba Bus Station "
            "to International City Bus Stop 1"
        )

    async def test_unserved_stop_has_no_connection(self, dataset: TransitDataset) -> None:
        plan = await JourneyPlanner(dataset).plan("M_EXP", "M_BUR")
        assert plan.kind == "none"

    async def test_to_dict(self, dataset: TransitDataset) -> None:
        plan = await JourneyPlanner(dataset).plan("B_GSOUQ", "M_UAE")
        d = plan.to_dict()
        assert d["kind"] == "transfer"
        assert d["from"]["stop_id"] == "B_GSOUQ"
        assert d["to"]["stop_id"] == "M_UAE"
        assert d["options"][0]["legs"][1]["route_id"] == "MRed"


class TestResultLimits:
    """Tests for the direct and transfer caps on a crowded network."""

    async def test_direct_capped_at_five_fewest_stops_first(
        self, busy_dataset: TransitDataset
    ) -> None:
        routes = await JourneyPlanner(busy_dataset).find_direct("ORG", "DST")

        assert len(routes) == 5
        assert [r.route_id for r in routes] == ["D3", "D5", "D1", "D7", "D6"]
        assert [r.stops_between for r in routes] == [1, 2, 3, 4, 5]

    async def test_transfer_capped_at_five_in_discovery_order(
        self, busy_dataset: TransitDataset
    ) -> None:
        transfers = await JourneyPlanner(busy_dataset).find_transfer("T_ORG", "T_DST")

        # Feeder patterns are discovered in feed order, not by name
        assert len(transfers) == 5
        assert [(t.first_leg.route_id, t.second_leg.route_id) for t in transfers] == [
            ("F5", "G5"),
            ("F2", "G2"),
            ("F7", "G7"),
            ("F0", "G0"),
            ("F3", "G3"),
        ]
        assert [t.transfer_stop_id for t in transfers] == ["HUB5", "HUB2", "HUB7", "HUB0", "HUB3"]

    async def test_plan_keeps_the_caps(self, busy_dataset: TransitDataset) -> None:
        planner = JourneyPlanner(busy_dataset)

        direct = await planner.plan("ORG", "DST")
        transfer = await planner.plan("T_ORG", "T_DST")

        assert direct.kind == "direct"
        assert len(direct.options) == 5
        assert transfer.kind == "transfer"
        assert len(transfer.options) == 5
