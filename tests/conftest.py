"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from transit_planner.database import TransitDataset
from transit_planner.main import create_app
from transit_planner.services.gtfs_static.importer import DatasetImporter

from .fixtures.gtfs_fixture import build_busy_feed, build_gtfs_zip


@pytest.fixture
def gtfs_zip_path(tmp_path: Path) -> Path:
    """Sample feed written as a local ZIP file."""
    path = tmp_path / "gtfs.zip"
    path.write_bytes(build_gtfs_zip())
    return path


@pytest.fixture
async def dataset_path(tmp_path: Path, gtfs_zip_path: Path) -> Path:
    """Dataset file built from the sample feed with the default policy."""
    output = tmp_path / "data" / "transit.db"
    report = await DatasetImporter(policy="first").run(gtfs_zip_path, output_path=output)
    assert report.status == "success", report.errors
    return output


@pytest.fixture
async def dataset(dataset_path: Path) -> AsyncGenerator[TransitDataset, None]:
    """Read-only handle to the sample dataset."""
    ds = TransitDataset(dataset_path)
    yield ds
    await ds.close()


@pytest.fixture
async def busy_dataset(tmp_path: Path) -> AsyncGenerator[TransitDataset, None]:
    """Dataset built from the crowded network used for result limits."""
    feed = tmp_path / "busy.zip"
    feed.write_bytes(build_gtfs_zip(**build_busy_feed()))
    output = tmp_path / "busy" / "transit.db"
    report = await DatasetImporter(policy="first").run(feed, output_path=output)
    assert report.status == "success", report.errors

    ds = TransitDataset(output)
    yield ds
    await ds.close()


@pytest.fixture
async def client(dataset: TransitDataset) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for an app serving the sample dataset."""
    app = create_app()
    app.state.dataset = dataset
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def client_no_dataset() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for an app that could not open its dataset."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
