"""Services package exports."""

from jobsite_forecast.services.forecast_cache import ForecastCache
from jobsite_forecast.services.forecast_provider import ForecastProvider, ProviderFetchFailure
from jobsite_forecast.services.forecast_store import (
    ForecastStore,
    InMemoryForecastStore,
    PostgresForecastStore,
    RedisForecastStore,
    StoreQueryFailure,
    StoreWriteFailure,
)
from jobsite_forecast.services.geocoding_service import GeocodeFailure, GeocodingService
from jobsite_forecast.services.logging_service import configure_logging, get_logger
from jobsite_forecast.services.region_service import RegionClassifier
from jobsite_forecast.services.suitability_service import is_suitable

__all__ = [
    "ForecastCache",
    "ForecastProvider",
    "ForecastStore",
    "GeocodeFailure",
    "GeocodingService",
    "InMemoryForecastStore",
    "PostgresForecastStore",
    "ProviderFetchFailure",
    "RedisForecastStore",
    "RegionClassifier",
    "StoreQueryFailure",
    "StoreWriteFailure",
    "configure_logging",
    "get_logger",
    "is_suitable",
]
