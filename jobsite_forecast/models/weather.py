"""Weather forecast models."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from jobsite_forecast.models.geo import Coordinate


class WeatherRecord(BaseModel):
    """One normalized forecast slot for a location.

    Records are immutable once written; a later fetch writes a new record
    rather than mutating an existing one.
    """

    model_config = ConfigDict(frozen=True)

    temperature: int = Field(..., description="Temperature in Fahrenheit")
    conditions: str = Field(..., description="Primary weather label (e.g. 'Clear', 'Rain')")
    precipitation: int = Field(
        ..., ge=0, le=100, description="Precipitation probability percentage"
    )
    wind_speed: int = Field(..., ge=0, description="Wind speed in mph")
    forecast_time: datetime = Field(..., description="Time the forecast slot applies to")
    coordinate: Coordinate = Field(..., description="Location the forecast was fetched for")
    cached_at: datetime = Field(..., description="When the record was fetched")


def neutral_default(coordinate: Coordinate, now: datetime | None = None) -> WeatherRecord:
    """Fallback record used when no live forecast can be obtained."""
    now = now or datetime.now(timezone.utc)
    return WeatherRecord(
        temperature=70,
        conditions="Unknown",
        precipitation=0,
        wind_speed=0,
        forecast_time=now,
        coordinate=coordinate,
        cached_at=now,
    )


def to_document(record: WeatherRecord) -> dict[str, Any]:
    """Convert a record to the stored document shape."""
    return {
        "temperature": record.temperature,
        "conditions": record.conditions,
        "precipitation": record.precipitation,
        "windSpeed": record.wind_speed,
        "timestamp": record.cached_at,
        "lat": record.coordinate.lat,
        "lng": record.coordinate.lng,
        "forecastDate": record.forecast_time,
    }


def from_document(doc: dict[str, Any]) -> WeatherRecord:
    """Build a record from a stored document.

    Timestamps may be datetimes or ISO-8601 strings depending on the backend.
    """
    return WeatherRecord(
        temperature=doc["temperature"],
        conditions=doc["conditions"],
        precipitation=doc["precipitation"],
        wind_speed=doc["windSpeed"],
        forecast_time=doc["forecastDate"],
        coordinate=Coordinate(lat=doc["lat"], lng=doc["lng"]),
        cached_at=doc["timestamp"],
    )


class ForecastResponse(BaseModel):
    """Forecast for a job site plus its installation suitability."""

    forecast: WeatherRecord
    suitable: bool = Field(..., description="Whether conditions allow installation work")
    message: str = Field(..., description="Human readable suitability summary")
