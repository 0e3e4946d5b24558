"""GTFS feed readers for ZIP archives and extracted directories."""

from __future__ import annotations

import io
import zipfile
from pathlib import Path

from transit_planner.logging import get_logger

logger = get_logger(__name__)

# Files the dataset build consumes
FEED_FILES = ("stops.txt", "routes.txt", "trips.txt", "stop_times.txt")


def _log_feed_contents(names: set[str], kind: str) -> None:
    present = sorted(set(FEED_FILES) & names)
    missing = sorted(set(FEED_FILES) - names)
    if missing:
        logger.warning(
            "GTFS feed is missing files, they will be treated as empty",
            feed_kind=kind,
            missing_files=missing,
        )
    logger.info(
        "GTFS feed opened",
        feed_kind=kind,
        files_present=present,
        total_files=len(names),
    )


class GtfsZipReader:
    """Opens a GTFS ZIP archive held in memory."""

    def __init__(self, data: bytes) -> None:
        """Initialize reader with ZIP bytes.

        Raises:
            zipfile.BadZipFile: If data is not a valid ZIP.
        """
        self._zip = zipfile.ZipFile(io.BytesIO(data))
        # Some agencies nest the feed in a single top-level folder
        self._names = {Path(name).name: name for name in self._zip.namelist() if not name.endswith("/")}
        _log_feed_contents(set(self._names), "zip")

    def has_file(self, filename: str) -> bool:
        return filename in self._names

    def open_file(self, filename: str) -> io.TextIOWrapper:
        """Open a file from the ZIP archive for text reading.

        Returns:
            TextIOWrapper suitable for csv.DictReader.

        Raises:
            KeyError: If the file is not in the archive.
        """
        binary_stream = self._zip.open(self._names[filename])
        return io.TextIOWrapper(binary_stream, encoding="utf-8-sig")

    def list_files(self) -> list[str]:
        """List all filenames in the archive."""
        return sorted(self._names)

    def close(self) -> None:
        """Close the ZIP archive."""
        self._zip.close()

    def __enter__(self) -> GtfsZipReader:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class GtfsDirectoryReader:
    """Reads an already extracted GTFS feed directory."""

    def __init__(self, path: str | Path) -> None:
        self._root = Path(path)
        if not self._root.is_dir():
            msg = f"GTFS directory not found: {self._root}"
            raise FileNotFoundError(msg)
        self._open: list[io.TextIOWrapper] = []
        _log_feed_contents(set(self.list_files()), "directory")

    def has_file(self, filename: str) -> bool:
        return (self._root / filename).is_file()

    def open_file(self, filename: str) -> io.TextIOWrapper:
        stream = (self._root / filename).open(encoding="utf-8-sig", newline="")
        self._open.append(stream)
        return stream

    def list_files(self) -> list[str]:
        return sorted(p.name for p in self._root.iterdir() if p.is_file())

    def close(self) -> None:
        for stream in self._open:
            stream.close()
        self._open.clear()

    def __enter__(self) -> GtfsDirectoryReader:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


GtfsFeedReader = GtfsZipReader | GtfsDirectoryReader
