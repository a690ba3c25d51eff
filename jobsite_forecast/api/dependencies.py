"""FastAPI dependencies resolving services built at startup."""

from fastapi import Request

from jobsite_forecast.services.forecast_cache import ForecastCache
from jobsite_forecast.services.forecast_store import ForecastStore
from jobsite_forecast.services.geocoding_service import GeocodingService
from jobsite_forecast.services.region_service import RegionClassifier


def get_forecast_cache(request: Request) -> ForecastCache:
    return request.app.state.forecast_cache


def get_forecast_store(request: Request) -> ForecastStore:
    return request.app.state.forecast_store


def get_region_classifier(request: Request) -> RegionClassifier:
    return request.app.state.region_classifier


def get_geocoding_service(request: Request) -> GeocodingService:
    return request.app.state.geocoding_service
