"""Models package exports."""

from jobsite_forecast.models.geo import (
    ClassifyResponse,
    Coordinate,
    LocateRequest,
    LocateResponse,
    Region,
    RegionTag,
)
from jobsite_forecast.models.weather import (
    ForecastResponse,
    WeatherRecord,
    from_document,
    neutral_default,
    to_document,
)

__all__ = [
    "ClassifyResponse",
    "Coordinate",
    "ForecastResponse",
    "LocateRequest",
    "LocateResponse",
    "Region",
    "RegionTag",
    "WeatherRecord",
    "from_document",
    "neutral_default",
    "to_document",
]
