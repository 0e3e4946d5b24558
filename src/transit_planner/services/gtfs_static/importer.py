"""Dataset importer - orchestrates fetch, parse, normalize, pattern build and publish.

A build never touches the published dataset until it is complete: rows are
written into a temporary file next to the output, which then replaces the
output with a single ``os.replace``. A failed build leaves the previous
dataset in place.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from transit_planner.config import get_settings
from transit_planner.database import TransitDataset, create_writable_engine
from transit_planner.logging import get_logger
from transit_planner.models import Base
from transit_planner.services.errors import DatasetUnavailableError
from transit_planner.services.gtfs_static.fetcher import GtfsStaticFetcher
from transit_planner.services.gtfs_static.normalizer import GtfsNormalizer, NormalizationError
from transit_planner.services.gtfs_static.parser import GtfsParser
from transit_planner.services.gtfs_static.patterns import (
    PatternSelectionPolicy,
    PatternSet,
    StopTimeRecord,
    TripRecord,
    build_patterns,
    get_policy,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.ext.asyncio import AsyncConnection

logger = get_logger(__name__)

SCHEMA_VERSION = "1"


class BuildInProgressError(Exception):
    """Raised when another build holds the lock for the same output file."""


class ImportReport:
    """Collects build metrics, warnings, and errors."""

    def __init__(
        self,
        source: str,
        feed_hash: str,
        output_path: Path,
        policy: str,
        import_id: str | None = None,
    ) -> None:
        self.import_id = import_id or str(uuid.uuid4())
        self.source = source
        self.feed_hash = feed_hash
        self.output_path = output_path
        self.policy = policy
        self.started_at = datetime.now(timezone.utc)
        self.ended_at: datetime | None = None
        self.duration_ms: int | None = None
        self.counts: dict[str, dict[str, int]] = {}
        self.patterns: dict[str, Any] = {}
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.dry_run = False
        self.skipped_unchanged = False
        self.published = False

    def init_table(self, table: str) -> None:
        self.counts[table] = {"read": 0, "written": 0, "skipped": 0, "failed": 0}

    def finish(self) -> None:
        self.ended_at = datetime.now(timezone.utc)
        self.duration_ms = int((self.ended_at - self.started_at).total_seconds() * 1000)

    @property
    def status(self) -> str:
        if self.errors:
            return "failed"
        if self.skipped_unchanged:
            return "unchanged"
        return "dry_run" if self.dry_run else "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "import_id": self.import_id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.duration_ms,
            "source": self.source,
            "feed_hash": self.feed_hash,
            "output_path": str(self.output_path),
            "selection_policy": self.policy,
            "dry_run": self.dry_run,
            "skipped_unchanged": self.skipped_unchanged,
            "published": self.published,
            "counts": self.counts,
            "patterns": self.patterns,
            "warnings": self.warnings[:100],  # cap for output size
            "errors": self.errors[:100],
        }


class DatasetImporter:
    """Builds a pattern dataset file from a static GTFS feed.

    Supports dry_run mode, strict/lenient row handling,
    and skip-if-unchanged against the published dataset's feed hash.
    """

    def __init__(
        self,
        batch_size: int | None = None,
        strict: bool | None = None,
        policy: str | PatternSelectionPolicy | None = None,
        fetcher: GtfsStaticFetcher | None = None,
    ) -> None:
        settings = get_settings()
        self.batch_size = batch_size if batch_size is not None else settings.import_batch_size
        self.strict = strict if strict is not None else settings.gtfs_import_strict
        policy = policy if policy is not None else settings.pattern_selection_policy
        self.policy = get_policy(policy) if isinstance(policy, str) else policy
        self._fetcher = fetcher or GtfsStaticFetcher()
        self._normalizer = GtfsNormalizer()

    async def run(
        self,
        source: str | Path,
        output_path: str | Path | None = None,
        dry_run: bool = False,
        skip_if_unchanged: bool = False,
    ) -> ImportReport:
        """Execute the full build pipeline.

        Args:
            source: Feed URL, local ZIP path or extracted feed directory.
            output_path: Dataset file to publish; defaults to DATASET_PATH.
            dry_run: If True, parse, validate and build patterns but write nothing.
            skip_if_unchanged: If True, skip the build when the published
                dataset was built from a feed with the same hash.

        Returns:
            ImportReport with full metrics.

        Raises:
            FetchError, InvalidZipError, FileNotFoundError: If the feed cannot be read.
            MissingColumnError: If a feed file lacks an identifier column.
            BuildInProgressError: If another build is writing the same output.
        """
        import_id = str(uuid.uuid4())
        output = Path(output_path) if output_path is not None else get_settings().dataset_path
        logger.info(
            "Starting dataset build",
            import_id=import_id,
            source=str(source),
            output=str(output),
            policy=self.policy.name,
            dry_run=dry_run,
        )

        reader, feed_hash = await self._fetcher.open_feed(source)
        report = ImportReport(
            source=str(source),
            feed_hash=feed_hash,
            output_path=output,
            policy=self.policy.name,
            import_id=import_id,
        )
        report.dry_run = dry_run

        if skip_if_unchanged and not dry_run:
            published_hash = await self._published_feed_hash(output)
            if published_hash == feed_hash:
                logger.info("Feed hash unchanged, skipping build", feed_hash=feed_hash)
                reader.close()
                report.skipped_unchanged = True
                report.finish()
                return report

        with reader:
            parser = GtfsParser(reader)
            stops_data = self._dedupe(
                self._parse_and_normalize(
                    parser.parse_stops, self._normalizer.normalize_stop, "stops", report
                ),
                "stop_id",
                "stops",
                report,
            )
            routes_data = self._dedupe(
                self._parse_and_normalize(
                    parser.parse_routes, self._normalizer.normalize_route, "routes", report
                ),
                "route_id",
                "routes",
                report,
            )
            trips = [
                TripRecord(**row)
                for row in self._parse_and_normalize(
                    parser.parse_trips, self._normalizer.normalize_trip, "trips", report
                )
            ]
            stop_times = (
                StopTimeRecord(**row)
                for row in self._parse_and_normalize(
                    parser.parse_stop_times,
                    self._normalizer.normalize_stop_time,
                    "stop_times",
                    report,
                )
            )
            pattern_set = build_patterns(trips, stop_times, self.policy)

        report.patterns = pattern_set.counts()
        if pattern_set.skipped_groups:
            report.warnings.append(
                f"{len(pattern_set.skipped_groups)} route directions had no stop times"
            )
        if pattern_set.duplicate_sequences:
            report.warnings.append(
                f"{pattern_set.duplicate_sequences} stop times repeated a sequence value"
            )

        if report.errors and self.strict:
            logger.error(
                "Strict build aborted on invalid rows",
                import_id=import_id,
                errors_count=len(report.errors),
            )
            report.finish()
            return report

        if dry_run:
            logger.info("Dry run complete, skipping dataset write", import_id=import_id)
            report.finish()
            return report

        with _BuildLock(output):
            await self._publish(output, stops_data, routes_data, pattern_set, report)

        report.finish()
        logger.info(
            "Dataset build complete",
            import_id=import_id,
            output=str(output),
            duration_ms=report.duration_ms,
            counts=report.counts,
            patterns=report.patterns,
            warnings_count=len(report.warnings),
        )
        return report

    def _parse_and_normalize(
        self,
        parse_fn: Callable[[], Iterator[dict[str, Any]]],
        normalize_fn: Callable[[dict[str, Any]], dict[str, Any]],
        table_name: str,
        report: ImportReport,
    ) -> Iterator[dict[str, Any]]:
        """Parse and normalize rows from a GTFS file.

        Collects errors per row; in strict mode stops at the first error.
        """
        report.init_table(table_name)

        for row in parse_fn():
            report.counts[table_name]["read"] += 1
            try:
                normalized = normalize_fn(row)
            except NormalizationError as exc:
                report.counts[table_name]["failed"] += 1
                msg = f"{table_name} row error: {exc}"
                if self.strict:
                    report.errors.append(msg)
                    return
                report.warnings.append(msg)
                continue
            yield normalized

    @staticmethod
    def _dedupe(
        rows: Iterator[dict[str, Any]],
        key: str,
        table_name: str,
        report: ImportReport,
    ) -> list[dict[str, Any]]:
        """Keep the first row for each identifier."""
        seen: set[str] = set()
        unique: list[dict[str, Any]] = []
        for row in rows:
            if row[key] in seen:
                report.counts[table_name]["skipped"] += 1
                continue
            seen.add(row[key])
            unique.append(row)
        return unique

    async def _published_feed_hash(self, output: Path) -> str | None:
        """Feed hash recorded in the currently published dataset, if any."""
        try:
            dataset = TransitDataset(output)
        except DatasetUnavailableError:
            return None
        try:
            meta = await dataset.read_meta()
        except SQLAlchemyError as exc:
            logger.warning("Could not read published feed hash", error=str(exc))
            return None
        finally:
            await dataset.close()
        return meta.get("feed_hash")

    async def _publish(
        self,
        output: Path,
        stops_data: list[dict[str, Any]],
        routes_data: list[dict[str, Any]],
        pattern_set: PatternSet,
        report: ImportReport,
    ) -> None:
        """Write a fresh dataset file and atomically replace the output."""
        temp_path = output.with_name(f"{output.name}.building-{report.import_id}")
        try:
            await self._write_dataset(temp_path, stops_data, routes_data, pattern_set, report)
            os.replace(temp_path, output)
        except Exception as exc:
            msg = f"Dataset write failed: {exc}"
            logger.error(msg, exc_info=exc, output=str(output))
            report.errors.append(msg)
            raise
        finally:
            temp_path.unlink(missing_ok=True)
        report.published = True

    async def _write_dataset(
        self,
        path: Path,
        stops_data: list[dict[str, Any]],
        routes_data: list[dict[str, Any]],
        pattern_set: PatternSet,
        report: ImportReport,
    ) -> None:
        engine = create_writable_engine(path)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                await self._insert_rows(
                    conn, "stops", ("stop_id", "name", "lat", "lon", "kind"), stops_data, report
                )
                await self._insert_rows(
                    conn,
                    "routes",
                    ("route_id", "short_name", "long_name", "mode", "color"),
                    routes_data,
                    report,
                )
                await self._insert_rows(
                    conn,
                    "route_patterns",
                    (
                        "pattern_id",
                        "route_id",
                        "direction",
                        "headsign",
                        "first_stop_id",
                        "last_stop_id",
                        "stop_count",
                    ),
                    [asdict(p) for p in pattern_set.patterns],
                    report,
                )
                await self._insert_rows(
                    conn,
                    "pattern_stops",
                    ("pattern_id", "stop_id", "sequence"),
                    [asdict(ps) for ps in pattern_set.pattern_stops],
                    report,
                )
                await self._insert_rows(
                    conn,
                    "stop_routes",
                    ("stop_id", "route_id", "direction"),
                    [asdict(sr) for sr in pattern_set.stop_routes],
                    report,
                )
                await self._insert_rows(
                    conn,
                    "dataset_meta",
                    ("key", "value"),
                    [{"key": k, "value": v} for k, v in self._meta(report).items()],
                    report,
                )

            # VACUUM cannot run inside a transaction
            async with engine.connect() as conn:
                conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
                await conn.execute(text("ANALYZE"))
                await conn.execute(text("VACUUM"))
        finally:
            await engine.dispose()

    async def _insert_rows(
        self,
        conn: AsyncConnection,
        table: str,
        columns: tuple[str, ...],
        data: list[dict[str, Any]],
        report: ImportReport,
    ) -> None:
        """Batch insert rows with executemany."""
        if table not in report.counts:
            report.init_table(table)
        if not data:
            return

        column_list = ", ".join(columns)
        values = ", ".join(f":{col}" for col in columns)
        stmt = text(f"INSERT INTO {table} ({column_list}) VALUES ({values})")

        for batch_start in range(0, len(data), self.batch_size):
            batch = data[batch_start : batch_start + self.batch_size]
            await conn.execute(stmt, [{col: row[col] for col in columns} for row in batch])
            report.counts[table]["written"] += len(batch)

        logger.info("Wrote table", table=table, rows=report.counts[table]["written"])

    @staticmethod
    def _meta(report: ImportReport) -> dict[str, str]:
        meta = {
            "schema_version": SCHEMA_VERSION,
            "feed_hash": report.feed_hash,
            "built_at": datetime.now(timezone.utc).isoformat(),
            "source": report.source,
            "selection_policy": report.policy,
        }
        for table in ("routes", "stops", "route_patterns", "pattern_stops", "stop_routes"):
            meta[f"{table}_count"] = str(report.counts.get(table, {}).get("written", 0))
        return meta


class _BuildLock:
    """Exclusive lock file next to the output, held for the write phase."""

    def __init__(self, output: Path) -> None:
        self.path = output.with_name(f"{output.name}.lock")

    def __enter__(self) -> _BuildLock:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            msg = f"Another build holds {self.path}"
            raise BuildInProgressError(msg) from None
        with os.fdopen(fd, "w") as fh:
            fh.write(str(os.getpid()))
        return self

    def __exit__(self, *args: object) -> None:
        self.path.unlink(missing_ok=True)
