"""Tests for route endpoints.

GET /routes           - list or search routes
GET /routes/{token}   - route detail with directions
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient


class TestListRoutes:
    @pytest.mark.asyncio
    async def test_lists_all_routes(self, client: AsyncClient) -> None:
        response = await client.get("/routes")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 10
        assert data["mode"] is None
        assert data["items"][0]["short_name"] == "8"

    @pytest.mark.asyncio
    async def test_mode_filter(self, client: AsyncClient) -> None:
        response = await client.get("/routes", params={"mode": "metro"})

        assert response.status_code == 200
        data = response.json()
        assert [r["route_id"] for r in data["items"]] == ["MRed"]
        assert data["items"][0]["color"] == "E21836"

    @pytest.mark.asyncio
    async def test_search(self, client: AsyncClient) -> None:
        response = await client.get("/routes", params={"q": "x28"})

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "x28"
        assert [r["route_id"] for r in data["items"]] == ["X28", "X280"]

    @pytest.mark.asyncio
    async def test_blank_query_lists(self, client: AsyncClient) -> None:
        response = await client.get("/routes", params={"q": "  "})

        assert response.status_code == 200
        assert response.json()["count"] == 10

    @pytest.mark.asyncio
    async def test_unknown_mode_returns_400(self, client: AsyncClient) -> None:
        response = await client.get("/routes", params={"mode": "Zeppelin"})

        assert response.status_code == 400
        assert "Unknown mode" in response.json()["detail"]


class TestRouteDetail:
    @pytest.mark.asyncio
    async def test_route_with_directions(self, client: AsyncClient) -> None:
        response = await client.get("/routes/X28")

        assert response.status_code == 200
        data = response.json()
        assert data["route_id"] == "X28"
        assert data["long_name"] == "Gold Souq - BurJuman Express"
        assert [d["direction_name"] for d in data["directions"]] == ["Upward", "Downward"]
        upward = data["directions"][0]
        assert upward["headsign"] == "BurJuman"
        assert [s["stop_id"] for s in upward["stops"]] == ["B_GSOUQ", "M_GLD", "M_BKM", "M_BUR"]
        assert upward["stops"][0]["lat"] == pytest.approx(25.2715)

    @pytest.mark.asyncio
    async def test_resolves_by_short_name(self, client: AsyncClient) -> None:
        response = await client.get("/routes/F55")

        assert response.status_code == 200
        assert response.json()["route_id"] == "DXB_F55"

    @pytest.mark.asyncio
    async def test_mode_mismatch_returns_404(self, client: AsyncClient) -> None:
        response = await client.get("/routes/Red", params={"mode": "Bus"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_route_returns_404(self, client: AsyncClient) -> None:
        response = await client.get("/routes/Z999")

        assert response.status_code == 404
        assert response.json()["detail"] == "Route 'Z999' not found"


class TestDatasetUnavailable:
    @pytest.mark.asyncio
    async def test_returns_503(self, client_no_dataset: AsyncClient) -> None:
        response = await client_no_dataset.get("/routes")

        assert response.status_code == 503
        assert response.json()["detail"] == "Dataset not available"
