"""FastAPI application entry point.

The dataset is opened once at startup and shared by every request through
``app.state.dataset``. When it cannot be opened the app still starts:
``/health`` reports ``degraded`` and the query endpoints answer 503.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from transit_planner.config import Settings, get_settings
from transit_planner.database import TransitDataset, get_dataset
from transit_planner.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from transit_planner.routers.journey import router as journey_router
from transit_planner.routers.routes import router as routes_router
from transit_planner.routers.stops import router as stops_router
from transit_planner.services.errors import DatasetUnavailableError
from transit_planner.services.lookup.stats import dataset_stats

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = get_logger(__name__)


def _open_dataset() -> TransitDataset | None:
    try:
        return TransitDataset.from_settings()
    except DatasetUnavailableError as exc:
        logger.error("Dataset unavailable, serving degraded", error=str(exc))
        return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("Starting Transit Planner API", dataset=str(get_settings().dataset_path))
    app.state.dataset = _open_dataset()

    yield

    logger.info("Shutting down Transit Planner API")
    if app.state.dataset is not None:
        await app.state.dataset.close()
        app.state.dataset = None


async def _health(settings: Settings, dataset: TransitDataset | None) -> dict[str, Any]:
    missing_env = settings.missing_required_env()
    readable = dataset is not None and await dataset.check()
    stats = await dataset_stats(dataset) if readable else None

    issues: list[str] = []
    if missing_env:
        issues.append("Missing required environment variables: " + ", ".join(missing_env))
    if not readable:
        issues.append(f"Dataset not readable at {settings.dataset_path}")

    if missing_env:
        status = "unhealthy"
    elif readable:
        status = "healthy"
    else:
        status = "degraded"

    return {
        "service": settings.app_name,
        "status": status,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {"dataset": readable},
        "dataset": stats,
        "issues": issues,
    }


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    docs_enabled = settings.environment != "production"

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Route lookup, stop search and direct or one-transfer journey planning "
            "over a prebuilt transit pattern dataset"
        ),
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
    )
    app.state.dataset = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.environment == "development" else [],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        bind_request_context(request_id=request_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(routes_router)
    app.include_router(stops_router)
    app.include_router(journey_router)

    @app.get("/health", tags=["meta"])
    async def health_check(request: Request) -> dict[str, Any]:
        """Application status plus dataset counts and build metadata."""
        return await _health(get_settings(), request.app.state.dataset)

    @app.get("/meta/dataset", tags=["meta"])
    async def dataset_info(
        dataset: Annotated[TransitDataset, Depends(get_dataset)],
    ) -> dict[str, Any]:
        """Row counts and build metadata of the served dataset."""
        return await dataset_stats(dataset)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


app = create_app()
