"""Dataset statistics for health checks and the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import text

if TYPE_CHECKING:
    from transit_planner.database import TransitDataset

_TABLES = ("routes", "stops", "route_patterns", "pattern_stops", "stop_routes")


async def dataset_stats(dataset: TransitDataset) -> dict[str, Any]:
    """Row counts per table plus the build metadata."""
    counts: dict[str, int] = {}
    async with dataset.session() as session:
        for table in _TABLES:
            result = await session.execute(text(f"SELECT COUNT(*) FROM {table}"))
            counts[table] = int(result.scalar_one())

    meta = await dataset.read_meta()
    return {
        "path": str(dataset.path),
        "counts": counts,
        "feed_hash": meta.get("feed_hash"),
        "built_at": meta.get("built_at"),
        "source": meta.get("source"),
        "selection_policy": meta.get("selection_policy"),
        "schema_version": meta.get("schema_version"),
    }
