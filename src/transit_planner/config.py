"""Application configuration via environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Transit Planner API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_format: Literal["auto", "console", "json"] = "auto"

    # Dataset file (read-only for the API, rebuilt by the importer)
    dataset_path: Path = Field(
        default=Path("data/transit.db"),
        validation_alias=AliasChoices("DATASET_PATH", "TRANSIT_DATASET_PATH"),
    )

    # Static GTFS source: local ZIP, extracted directory or URL
    gtfs_source: str = Field(
        default="",
        validation_alias=AliasChoices("GTFS_SOURCE", "STATIC_GTFS_URL"),
    )
    gtfs_fetch_timeout_sec: int = 120
    gtfs_fetch_max_retries: int = 3
    gtfs_fetch_backoff_base: float = 2.0

    # Dataset build
    import_batch_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        validation_alias=AliasChoices("IMPORT_BATCH_SIZE", "GTFS_IMPORT_BATCH_SIZE"),
    )
    gtfs_import_strict: bool = Field(
        default=False,
        validation_alias=AliasChoices("GTFS_IMPORT_STRICT"),
    )
    pattern_selection_policy: Literal["first", "most_common"] = "first"

    # Lookup limits
    search_min_length: int = 2
    search_result_limit: int = 20
    route_search_limit: int = 20
    nearby_result_limit: int = 20
    default_nearby_radius_m: float = 500.0
    max_nearby_radius_m: float = 5000.0

    # Journey planner caps
    direct_result_limit: int = 5
    transfer_result_limit: int = 5

    def missing_required_env(self) -> list[str]:
        """Return required settings that are missing or empty."""
        missing: list[str] = []

        if not self.dataset_path.name:
            missing.append("DATASET_PATH")

        return missing


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
