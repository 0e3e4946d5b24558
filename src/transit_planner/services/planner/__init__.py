"""Direct and single-transfer journey planning."""

from transit_planner.services.planner.engine import JourneyPlanner
from transit_planner.services.planner.results import (
    DirectRoute,
    JourneyPlan,
    TransferLeg,
    TransferRoute,
)

__all__ = [
    "DirectRoute",
    "JourneyPlan",
    "JourneyPlanner",
    "TransferLeg",
    "TransferRoute",
]
