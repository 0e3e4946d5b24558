"""Static GTFS ingestion and pattern dataset build."""

from transit_planner.services.gtfs_static.fetcher import GtfsStaticFetcher
from transit_planner.services.gtfs_static.importer import DatasetImporter, ImportReport
from transit_planner.services.gtfs_static.normalizer import GtfsNormalizer
from transit_planner.services.gtfs_static.parser import GtfsParser
from transit_planner.services.gtfs_static.patterns import build_patterns, get_policy
from transit_planner.services.gtfs_static.reader import GtfsDirectoryReader, GtfsZipReader

__all__ = [
    "DatasetImporter",
    "GtfsDirectoryReader",
    "GtfsNormalizer",
    "GtfsParser",
    "GtfsStaticFetcher",
    "GtfsZipReader",
    "ImportReport",
    "build_patterns",
    "get_policy",
]
