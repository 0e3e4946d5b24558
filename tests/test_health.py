"""Tests for health endpoint."""

import pytest
from httpx import AsyncClient

from .fixtures.gtfs_fixture import EXPECTED_PATTERNS, EXPECTED_STOP_ROUTES


@pytest.mark.asyncio
async def test_health_endpoint_returns_200(client: AsyncClient) -> None:
    """Test that health endpoint returns 200 with expected fields."""
    response = await client.get("/health")

    assert response.status_code == 200

    data = response.json()
    assert data["service"] == "Transit Planner API"
    assert data["status"] == "healthy"
    assert "version" in data
    assert "environment" in data
    assert "timestamp" in data
    assert data["checks"]["dataset"] is True
    assert data["issues"] == []


@pytest.mark.asyncio
async def test_health_endpoint_reports_dataset_stats(client: AsyncClient) -> None:
    """Test that health endpoint includes dataset counts and build metadata."""
    response = await client.get("/health")
    stats = response.json()["dataset"]

    assert stats["counts"]["routes"] == 10
    assert stats["counts"]["route_patterns"] == EXPECTED_PATTERNS
    assert stats["counts"]["stop_routes"] == EXPECTED_STOP_ROUTES
    assert stats["selection_policy"] == "first"
    assert len(stats["feed_hash"]) == 64


@pytest.mark.asyncio
async def test_health_endpoint_degraded_without_dataset(client_no_dataset: AsyncClient) -> None:
    """Test that a missing dataset degrades health instead of failing it."""
    response = await client_no_dataset.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["dataset"] is False
    assert data["dataset"] is None
    assert any("Dataset not readable" in issue for issue in data["issues"])


@pytest.mark.asyncio
async def test_health_endpoint_includes_version(client: AsyncClient) -> None:
    """Test that health endpoint includes app version."""
    response = await client.get("/health")
    data = response.json()

    assert data["version"] == "0.1.0"


@pytest.mark.asyncio
async def test_health_endpoint_has_request_id_header(client: AsyncClient) -> None:
    """Test that health endpoint response includes X-Request-ID header."""
    response = await client.get("/health")

    assert "X-Request-ID" in response.headers
    assert len(response.headers["X-Request-ID"]) > 0


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"


@pytest.mark.asyncio
async def test_dataset_meta_endpoint(client: AsyncClient) -> None:
    response = await client.get("/meta/dataset")

    assert response.status_code == 200
    data = response.json()
    assert data["counts"]["stops"] == 17
    assert data["schema_version"] == "1"
    assert data["path"].endswith("transit.db")


@pytest.mark.asyncio
async def test_dataset_meta_endpoint_without_dataset(client_no_dataset: AsyncClient) -> None:
    response = await client_no_dataset.get("/meta/dataset")

    assert response.status_code == 503
