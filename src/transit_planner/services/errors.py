"""Error taxonomy shared by lookups, the journey planner and the HTTP layer."""

from __future__ import annotations


class TransitError(Exception):
    """Base class for expected query failures."""


class NotFoundError(TransitError):
    """A referenced route or stop does not exist."""


class StopNotFoundError(NotFoundError):
    """A stop id does not resolve to a stop row."""

    def __init__(self, stop_id: str) -> None:
        self.stop_id = stop_id
        super().__init__(f"Stop '{stop_id}' not found")


class RouteNotFoundError(NotFoundError):
    """A route token does not resolve to a route row."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Route '{token}' not found")


class InvalidInputError(TransitError):
    """A parameter is missing, too short or malformed."""


class DatasetUnavailableError(TransitError):
    """The dataset file is missing or cannot be opened."""
