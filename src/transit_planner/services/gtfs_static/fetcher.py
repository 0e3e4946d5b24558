"""Feed source resolution: URL download with retries, local ZIP or extracted directory.

Every source yields a reader plus a SHA-256 content hash. The hash is stored
in the dataset metadata and drives skip-if-unchanged rebuilds.
"""

from __future__ import annotations

import asyncio
import hashlib
import io
import zipfile
from pathlib import Path
from typing import Literal

import httpx

from transit_planner.config import get_settings
from transit_planner.logging import get_logger
from transit_planner.services.gtfs_static.reader import (
    FEED_FILES,
    GtfsDirectoryReader,
    GtfsFeedReader,
    GtfsZipReader,
)

logger = get_logger(__name__)

ZIP_MAGIC = b"PK\x03\x04"

SourceKind = Literal["url", "directory", "zip"]


class FetchError(Exception):
    """Raised when a remote feed cannot be downloaded."""


class InvalidZipError(Exception):
    """Raised when feed content is not a ZIP archive."""


def classify_source(source: str | Path) -> SourceKind:
    if str(source).startswith(("http://", "https://")):
        return "url"
    return "directory" if Path(source).is_dir() else "zip"


def _retryable(exc: httpx.HTTPError) -> bool:
    """Transport errors, throttling and server errors are worth another attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.RequestError)


class GtfsStaticFetcher:
    """Opens a static GTFS feed from a URL, a local ZIP or a directory."""

    def __init__(
        self,
        timeout_sec: int | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
    ) -> None:
        settings = get_settings()
        self.timeout_sec = timeout_sec or settings.gtfs_fetch_timeout_sec
        self.max_retries = max(1, max_retries or settings.gtfs_fetch_max_retries)
        self.backoff_base = backoff_base or settings.gtfs_fetch_backoff_base
        self.user_agent = f"transit-planner/{settings.app_version}"

    async def open_feed(self, source: str | Path) -> tuple[GtfsFeedReader, str]:
        """Return a reader for ``source`` and the hash of its content."""
        kind = classify_source(source)
        logger.info("Opening feed", source=str(source), kind=kind)

        if kind == "url":
            data, feed_hash = await self.fetch_remote(str(source))
            return GtfsZipReader(data), feed_hash
        if kind == "directory":
            path = Path(source)
            return GtfsDirectoryReader(path), self.hash_directory(path)

        data, feed_hash = self.fetch_local(source)
        return GtfsZipReader(data), feed_hash

    async def fetch_remote(self, url: str) -> tuple[bytes, str]:
        """Download a feed ZIP, retrying with exponential backoff.

        Client errors other than 429 fail on the first attempt.

        Raises:
            FetchError: If the download does not succeed.
            InvalidZipError: If the body is not a ZIP archive.
        """
        last_error: httpx.HTTPError | None = None
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_sec),
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
        ) as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    last_error = exc
                    if not _retryable(exc) or attempt == self.max_retries:
                        break
                    delay = self.backoff_base**attempt
                    logger.warning(
                        "Feed download failed, retrying",
                        url=url,
                        attempt=attempt,
                        delay_sec=delay,
                        error=str(exc),
                    )
                    await asyncio.sleep(delay)
                    continue

                data = response.content
                self._validate_zip(data)
                feed_hash = hashlib.sha256(data).hexdigest()
                logger.info(
                    "Feed downloaded",
                    url=url,
                    attempt=attempt,
                    size_bytes=len(data),
                    feed_hash=feed_hash,
                )
                return data, feed_hash

        msg = f"Failed to fetch GTFS feed from {url} after {attempt} attempt(s): {last_error}"
        raise FetchError(msg) from last_error

    def fetch_local(self, path: str | Path) -> tuple[bytes, str]:
        """Read a feed ZIP from disk.

        Raises:
            FileNotFoundError: If the file does not exist.
            InvalidZipError: If the file is not a ZIP archive.
        """
        path = Path(path)
        if not path.is_file():
            msg = f"Local GTFS file not found: {path}"
            raise FileNotFoundError(msg)

        data = path.read_bytes()
        self._validate_zip(data)
        feed_hash = hashlib.sha256(data).hexdigest()
        logger.info("Feed loaded", path=str(path), size_bytes=len(data), feed_hash=feed_hash)
        return data, feed_hash

    @staticmethod
    def hash_directory(path: Path) -> str:
        """Hash the feed files of an extracted directory, name and content."""
        digest = hashlib.sha256()
        for name in FEED_FILES:
            file_path = path / name
            if not file_path.is_file():
                continue
            digest.update(name.encode())
            with file_path.open("rb") as fh:
                for chunk in iter(lambda: fh.read(1 << 20), b""):
                    digest.update(chunk)
        return digest.hexdigest()

    @staticmethod
    def _validate_zip(data: bytes) -> None:
        if data[:4] != ZIP_MAGIC or not zipfile.is_zipfile(io.BytesIO(data)):
            msg = "Feed content is not a valid ZIP file"
            raise InvalidZipError(msg)
