"""Command-line interface for transit-planner.

``build`` compiles a GTFS feed into the dataset file; the query commands
answer from a local dataset file without any server.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from transit_planner.config import get_settings
from transit_planner.database import TransitDataset
from transit_planner.logging import get_logger, setup_logging
from transit_planner.services.errors import RouteNotFoundError, TransitError
from transit_planner.services.gtfs_static.fetcher import FetchError, InvalidZipError
from transit_planner.services.gtfs_static.importer import BuildInProgressError, DatasetImporter
from transit_planner.services.gtfs_static.parser import MissingColumnError
from transit_planner.services.gtfs_static.patterns import POLICIES
from transit_planner.services.lookup.routes import RouteLookup
from transit_planner.services.lookup.stats import dataset_stats
from transit_planner.services.lookup.stops import StopLookup
from transit_planner.services.planner.engine import JourneyPlanner

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

logger = get_logger(__name__)

# OSError covers missing feed files and failed writes or publishes
_BUILD_ERRORS = (
    FetchError,
    InvalidZipError,
    OSError,
    SQLAlchemyError,
    MissingColumnError,
    BuildInProgressError,
)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _dataset_path(args: argparse.Namespace) -> Path:
    return Path(args.dataset) if args.dataset else get_settings().dataset_path


async def _with_dataset(
    args: argparse.Namespace,
    query: Callable[[TransitDataset], Awaitable[Any]],
) -> Any:
    dataset = TransitDataset(_dataset_path(args))
    try:
        return await query(dataset)
    finally:
        await dataset.close()


def cmd_build(args: argparse.Namespace) -> int:
    """Execute build command."""
    source = args.source or get_settings().gtfs_source
    if not source:
        print("Error: no feed source given (use --source or set GTFS_SOURCE)", file=sys.stderr)
        return 2

    importer = DatasetImporter(strict=args.strict or None, policy=args.policy)
    try:
        report = asyncio.run(
            importer.run(
                source,
                output_path=args.output or _dataset_path(args),
                dry_run=args.dry_run,
                skip_if_unchanged=args.skip_if_unchanged,
            )
        )
    except _BUILD_ERRORS as exc:
        print(f"Error: {exc}", file=sys.stderr)
        logger.error("Dataset build failed", error=str(exc))
        return 1

    _print_json(report.to_dict())
    return 1 if report.errors else 0


def cmd_routes(args: argparse.Namespace) -> int:
    """Execute routes command."""

    async def query(dataset: TransitDataset) -> Any:
        lookup = RouteLookup(dataset)
        if args.detail:
            detail = await lookup.get_route_detail(args.detail, mode=args.mode)
            if detail is None:
                raise RouteNotFoundError(args.detail)
            return detail.to_dict()
        if args.query:
            routes = await lookup.search_routes(args.query, mode=args.mode)
        else:
            routes = await lookup.list_routes(mode=args.mode)
        return [r.to_dict() for r in routes]

    _print_json(asyncio.run(_with_dataset(args, query)))
    return 0


def cmd_stops(args: argparse.Namespace) -> int:
    """Execute stops command."""

    async def query(dataset: TransitDataset) -> Any:
        lookup = StopLookup(dataset)
        if args.routes_at:
            return (await lookup.routes_at_stop(args.routes_at)).to_dict()
        if args.near:
            lat, lon = args.near
            return [s.to_dict() for s in await lookup.nearby_stops(lat, lon, args.radius)]
        return [s.to_dict() for s in await lookup.search_stops(args.search or "")]

    _print_json(asyncio.run(_with_dataset(args, query)))
    return 0


def cmd_journey(args: argparse.Namespace) -> int:
    """Execute journey command."""

    async def query(dataset: TransitDataset) -> Any:
        plan = await JourneyPlanner(dataset).plan(args.from_stop, args.to_stop)
        return plan.to_dict()

    _print_json(asyncio.run(_with_dataset(args, query)))
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Execute stats command."""
    _print_json(asyncio.run(_with_dataset(args, dataset_stats)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="transit-planner",
        description="Build and query a transit pattern dataset",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {settings.app_version}"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument(
        "--dataset",
        default=None,
        help=f"Dataset file (default: DATASET_PATH, currently {settings.dataset_path})",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Build command
    build_parser_ = subparsers.add_parser("build", help="Build the dataset from a GTFS feed")
    build_parser_.add_argument(
        "--source", default=None, help="GTFS ZIP path, extracted directory or URL"
    )
    build_parser_.add_argument(
        "--output", default=None, help="Dataset file to publish (default: --dataset)"
    )
    build_parser_.add_argument(
        "--policy",
        choices=sorted(POLICIES),
        default=settings.pattern_selection_policy,
        help="Representative trip selection (default: %(default)s)",
    )
    build_parser_.add_argument(
        "--strict", action="store_true", help="Abort on the first invalid row"
    )
    build_parser_.add_argument(
        "--dry-run", action="store_true", help="Parse and build patterns without writing"
    )
    build_parser_.add_argument(
        "--skip-if-unchanged",
        action="store_true",
        help="Skip when the published dataset was built from the same feed",
    )
    build_parser_.set_defaults(func=cmd_build)

    # Routes command
    routes_parser = subparsers.add_parser("routes", help="List, search or show routes")
    routes_parser.add_argument("--mode", default=None, help="Bus, Metro, Tram, Rail or Ferry")
    group = routes_parser.add_mutually_exclusive_group()
    group.add_argument("--query", "-q", default=None, help="Route number or name fragment")
    group.add_argument("--detail", default=None, help="Show one route with its directions")
    routes_parser.set_defaults(func=cmd_routes)

    # Stops command
    stops_parser = subparsers.add_parser("stops", help="Search stops or find nearby stops")
    group = stops_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--search", "-q", default=None, help="Stop name words")
    group.add_argument(
        "--near", nargs=2, type=float, metavar=("LAT", "LON"), help="Find stops near a point"
    )
    group.add_argument("--routes-at", default=None, metavar="STOP_ID", help="Routes at a stop")
    stops_parser.add_argument(
        "--radius",
        type=float,
        default=settings.default_nearby_radius_m,
        help="Nearby radius in metres (default: %(default)s)",
    )
    stops_parser.set_defaults(func=cmd_stops)

    # Journey command
    journey_parser = subparsers.add_parser("journey", help="Plan a journey between two stops")
    journey_parser.add_argument("from_stop", metavar="FROM", help="Origin stop id")
    journey_parser.add_argument("to_stop", metavar="TO", help="Destination stop id")
    journey_parser.set_defaults(func=cmd_journey)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show dataset counts and build metadata")
    stats_parser.set_defaults(func=cmd_stats)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(stream=sys.stderr, level="DEBUG" if args.verbose else None)

    try:
        return args.func(args)
    except TransitError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
