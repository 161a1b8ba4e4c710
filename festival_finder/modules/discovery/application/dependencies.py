"""Discovery module dependencies."""

from festival_finder.core.config import Settings, settings as default_settings
from festival_finder.modules.catalog.application.pagination import (
    IncrementalPageController,
)
from festival_finder.modules.catalog.application.store import CatalogStore
from festival_finder.modules.catalog.application.suggestions import (
    SuggestionMatcher,
)
from festival_finder.modules.catalog.domain.repository import FestivalDataSource
from festival_finder.modules.catalog.infrastructure.data_sources import (
    HttpFestivalSource,
    JsonFileFestivalSource,
)
from festival_finder.modules.catalog.infrastructure.mappers import FestivalMapper
from festival_finder.modules.discovery.application.session import DiscoverySession
from festival_finder.modules.geolocation.application.provider import (
    GeolocationProvider,
)
from festival_finder.modules.geolocation.domain.ports import (
    GeolocationHost,
    LocationCache,
)
from festival_finder.modules.geolocation.infrastructure.ip_host import (
    IpGeolocationHost,
)
from festival_finder.modules.geolocation.infrastructure.location_cache import (
    JsonFileLocationCache,
)


def get_festival_mapper(settings: Settings) -> FestivalMapper:
    return FestivalMapper(default_currency=settings.DEFAULT_CURRENCY)


def get_festival_source(settings: Settings) -> FestivalDataSource:
    snapshot = JsonFileFestivalSource(settings.CATALOG_SNAPSHOT_PATH)
    if settings.CATALOG_SOURCE == "http":
        return HttpFestivalSource(
            url=settings.CATALOG_URL,
            timeout_sec=settings.CATALOG_FETCH_TIMEOUT_SEC,
            max_retries=settings.CATALOG_FETCH_MAX_RETRIES,
            snapshot=snapshot,
        )
    return snapshot


def get_location_cache(settings: Settings) -> LocationCache:
    return JsonFileLocationCache(settings.LOCATION_CACHE_PATH)


def get_geolocation_host(settings: Settings) -> GeolocationHost:
    return IpGeolocationHost(
        lookup_url=settings.GEO_IP_LOOKUP_URL,
        enabled=settings.GEO_IP_LOOKUP_ENABLED,
    )


def get_catalog_store(settings: Settings) -> CatalogStore:
    return CatalogStore(
        get_festival_source(settings),
        get_festival_mapper(settings),
        distance_fallback=settings.DISTANCE_FALLBACK_SORT,
    )


def get_geolocation_provider(settings: Settings) -> GeolocationProvider:
    return GeolocationProvider(
        get_geolocation_host(settings),
        get_location_cache(settings),
        high_accuracy_timeout_sec=settings.GEO_HIGH_ACCURACY_TIMEOUT_SEC,
        low_accuracy_timeout_sec=settings.GEO_LOW_ACCURACY_TIMEOUT_SEC,
        watch_timeout_sec=settings.GEO_WATCH_TIMEOUT_SEC,
        watch_maximum_age_sec=settings.GEO_WATCH_MAXIMUM_AGE_SEC,
    )


def build_discovery_session(settings: Settings | None = None) -> DiscoverySession:
    """Wire a discovery session from configuration. Nothing is started."""
    settings = settings or default_settings
    store = get_catalog_store(settings)
    return DiscoverySession(
        store,
        get_geolocation_provider(settings),
        pager=IncrementalPageController(
            store.view,
            page_size=settings.PAGE_SIZE,
            settle_sec=settings.PAGE_GROW_SETTLE_SEC,
        ),
        suggestions=SuggestionMatcher(store.records, limit=settings.SUGGESTION_LIMIT),
    )
