"""Application configuration."""

from pathlib import Path
from typing import Literal, Self

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "festival-finder"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Catalog data collaborator
    CATALOG_SOURCE: Literal["file", "http"] = "file"
    CATALOG_SNAPSHOT_PATH: Path = (
        _PROJECT_ROOT / "resources" / "catalog" / "festivals_snapshot.json"
    )
    CATALOG_URL: str | None = None
    CATALOG_FETCH_TIMEOUT_SEC: float = 15.0
    CATALOG_FETCH_MAX_RETRIES: int = 3
    DEFAULT_CURRENCY: str = "NOK"

    # Discovery view
    PAGE_SIZE: int = 9
    PAGE_GROW_SETTLE_SEC: float = 0.0  # pause before a grow is applied
    SUGGESTION_LIMIT: int = 5
    POPULAR_LIMIT: int = 4
    UPCOMING_LIMIT: int = 5
    NEARBY_RADIUS_KM: float = 50.0
    NEARBY_LIMIT: int = 3
    DISTANCE_FALLBACK_SORT: Literal["city", "popularity"] = "city"

    # Geolocation
    GEO_HIGH_ACCURACY_TIMEOUT_SEC: float = 10.0
    GEO_LOW_ACCURACY_TIMEOUT_SEC: float = 20.0
    GEO_WATCH_MAXIMUM_AGE_SEC: float = 300.0  # 5 minutes
    GEO_WATCH_TIMEOUT_SEC: float = 10.0
    GEO_IP_LOOKUP_ENABLED: bool = True
    GEO_IP_LOOKUP_URL: str = "https://ipapi.co/json/"
    LOCATION_CACHE_PATH: Path = Path.home() / ".festival_finder" / "location.json"

    @model_validator(mode="after")
    def _check_catalog_source(self) -> Self:
        if self.CATALOG_SOURCE == "http" and not self.CATALOG_URL:
            raise ValueError("CATALOG_URL is required when CATALOG_SOURCE is 'http'")
        return self

    @model_validator(mode="after")
    def _check_positive_limits(self) -> Self:
        for name in ("PAGE_SIZE", "SUGGESTION_LIMIT"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        return self


settings = Settings()
