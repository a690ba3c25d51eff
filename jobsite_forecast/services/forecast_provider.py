"""OpenWeatherMap 5 day / 3 hour forecast client."""

import math
from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import httpx
import structlog

from jobsite_forecast.config import Settings
from jobsite_forecast.models.geo import Coordinate
from jobsite_forecast.models.weather import WeatherRecord

logger = structlog.get_logger(__name__)


class ProviderFetchFailure(Exception):
    """The forecast API could not produce usable data.

    Attributes:
        reason: Short machine-friendly cause (timeout, http_status, ...)
        status_code: HTTP status when the API answered with an error
    """

    def __init__(self, reason: str, status_code: int | None = None):
        self.reason = reason
        self.status_code = status_code
        detail = f"{reason} (status {status_code})" if status_code else reason
        super().__init__(f"Forecast fetch failed: {detail}")


def _round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def within_business_hours(moment: datetime, tz: tzinfo, start: int, end: int) -> bool:
    """Check the local hour of a timestamp against an inclusive hour range."""
    return start <= moment.astimezone(tz).hour <= end


class ForecastProvider:
    """Fetches and normalizes multi-day forecasts for a coordinate.

    The HTTP client is owned by the caller so one connection pool can be
    shared across the application and swapped out in tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://api.openweathermap.org/data/2.5",
        timeout: float = 5.0,
        tz: tzinfo = timezone.utc,
        business_hours: tuple[int, int] = (7, 18),
    ):
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.tz = tz
        self.business_hours = business_hours

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "ForecastProvider":
        return cls(
            client=client,
            api_key=settings.openweathermap_api_key,
            base_url=settings.weather_api_base_url,
            timeout=settings.weather_api_timeout,
            tz=ZoneInfo(settings.service_timezone),
            business_hours=(settings.business_hours_start, settings.business_hours_end),
        )

    async def _call_api(self, coordinate: Coordinate) -> dict:
        """Make the single forecast request.

        Raises:
            ProviderFetchFailure: On missing key, timeout, transport error,
                non-2xx status or a non-JSON body
        """
        if not self.api_key:
            logger.error("weather_api_key_missing")
            raise ProviderFetchFailure("api_key_missing")

        params = {
            "lat": coordinate.lat,
            "lon": coordinate.lng,
            "appid": self.api_key,
            "units": "imperial",
        }

        try:
            response = await self.client.get(
                f"{self.base_url}/forecast",
                params=params,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("weather_api_timeout", timeout=self.timeout)
            raise ProviderFetchFailure("timeout") from e
        except httpx.HTTPError as e:
            logger.warning(
                "weather_api_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ProviderFetchFailure("transport_error") from e

        if not response.is_success:
            logger.warning("weather_api_bad_status", status_code=response.status_code)
            raise ProviderFetchFailure("http_status", status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderFetchFailure("malformed_payload") from e

    def _parse_entry(self, entry: dict[str, Any], coordinate: Coordinate, fetched_at: datetime) -> WeatherRecord:
        return WeatherRecord(
            temperature=_round_half_up(entry["main"]["temp"]),
            conditions=entry["weather"][0]["main"],
            precipitation=_round_half_up(entry["pop"] * 100),
            wind_speed=_round_half_up(entry["wind"]["speed"]),
            forecast_time=datetime.fromtimestamp(entry["dt"], tz=timezone.utc),
            coordinate=coordinate,
            cached_at=fetched_at,
        )

    async def fetch(self, coordinate: Coordinate) -> list[WeatherRecord]:
        """Fetch the forecast for a coordinate.

        Returns every slot inside business hours, in API order. No date
        filtering is applied here.

        Raises:
            ProviderFetchFailure: If the API call fails or the payload
                does not have the expected shape
        """
        data = await self._call_api(coordinate)
        fetched_at = datetime.now(timezone.utc)
        start, end = self.business_hours

        try:
            entries = data["list"]
            records = [self._parse_entry(e, coordinate, fetched_at) for e in entries]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(
                "weather_forecast_parse_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ProviderFetchFailure("malformed_payload") from e

        in_hours = [
            r for r in records
            if within_business_hours(r.forecast_time, self.tz, start, end)
        ]
        logger.debug(
            "weather_forecast_fetched",
            lat=coordinate.lat,
            lng=coordinate.lng,
            entries=len(records),
            business_hour_entries=len(in_hours),
        )
        return in_hours
