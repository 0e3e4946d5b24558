"""Dataset connection handling.

The serving path opens the dataset file read-only through a single shared
engine; the importer writes a fresh file through its own engine.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from fastapi import HTTPException, Request
from sqlalchemy import event, text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from transit_planner.config import get_settings
from transit_planner.logging import get_logger
from transit_planner.services.errors import DatasetUnavailableError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = get_logger(__name__)


def _casefold(value: str | None) -> str | None:
    return value.casefold() if value is not None else None


def _register_functions(dbapi_connection: Any, _connection_record: Any) -> None:
    """Expose Unicode-aware ``casefold(text)`` to SQL.

    SQLite's own LOWER() and LIKE fold ASCII letters only.
    """
    dbapi_connection.create_function("casefold", 1, _casefold)


def _attach_functions(engine: AsyncEngine) -> AsyncEngine:
    event.listen(engine.sync_engine, "connect", _register_functions)
    return engine


def read_only_url(path: Path) -> URL:
    """SQLite URI that refuses writes (``mode=ro``)."""
    return URL.create(
        "sqlite+aiosqlite",
        database=f"file:{path.resolve()}",
        query={"mode": "ro", "uri": "true"},
    )


def create_writable_engine(path: Path) -> AsyncEngine:
    """Engine used by the importer to populate a fresh dataset file."""
    return create_async_engine(
        URL.create("sqlite+aiosqlite", database=str(path)),
        echo=get_settings().debug,
    )


class TransitDataset:
    """Read-only handle to a built dataset.

    Constructed once at process start and passed to the lookup and planner
    services. Safe to share between concurrent queries.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        if not self.path.is_file():
            msg = f"Dataset file not found: {self.path}"
            raise DatasetUnavailableError(msg)

        self._engine: AsyncEngine = _attach_functions(
            create_async_engine(read_only_url(self.path), echo=get_settings().debug)
        )
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Dataset opened", path=str(self.path))

    @classmethod
    def from_settings(cls) -> TransitDataset:
        """Open the dataset configured by ``DATASET_PATH``."""
        return cls(get_settings().dataset_path)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session for a single query."""
        async with self._session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    async def check(self) -> bool:
        """Check if the dataset is readable."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1 FROM routes LIMIT 1"))
            return True
        except Exception as exc:
            logger.warning("Dataset check failed", path=str(self.path), error=str(exc))
            return False

    async def read_meta(self) -> dict[str, Any]:
        """Return the build metadata stored alongside the data."""
        async with self.session() as session:
            result = await session.execute(text("SELECT key, value FROM dataset_meta"))
            return {row.key: row.value for row in result.fetchall()}

    async def close(self) -> None:
        """Close database connections."""
        await self._engine.dispose()
        logger.info("Dataset closed", path=str(self.path))


def get_dataset(request: Request) -> TransitDataset:
    """FastAPI dependency returning the dataset opened at startup.

    Raises:
        HTTPException: 503 if no dataset could be opened.
    """
    dataset: TransitDataset | None = getattr(request.app.state, "dataset", None)
    if dataset is None:
        raise HTTPException(status_code=503, detail="Dataset not available")
    return dataset
