"""Address geocoding via the HERE geocode API."""

import httpx
import structlog

from jobsite_forecast.config import Settings
from jobsite_forecast.models.geo import Coordinate

logger = structlog.get_logger(__name__)


class GeocodeFailure(Exception):
    """An address could not be resolved to a coordinate."""


class GeocodingService:
    """Resolves street addresses to coordinates."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://geocode.search.hereapi.com/v1/geocode",
        timeout: float = 5.0,
    ):
        self.client = client
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "GeocodingService":
        return cls(
            client=client,
            api_key=settings.here_api_key,
            base_url=settings.geocode_api_url,
            timeout=settings.geocode_api_timeout,
        )

    async def geocode(self, address: str) -> Coordinate:
        """Geocode an address to its best matching coordinate.

        Raises:
            GeocodeFailure: If the address is blank, the request fails or
                the API returns no match
        """
        address = address.strip()
        if not address:
            raise GeocodeFailure("Address not found")

        try:
            response = await self.client.get(
                self.base_url,
                params={"q": address, "apiKey": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("geocode_api_bad_status", status_code=e.response.status_code)
            raise GeocodeFailure(f"Geocoding failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("geocode_api_error", error=str(e), error_type=type(e).__name__)
            raise GeocodeFailure("Geocoding service unavailable") from e
        except ValueError as e:
            raise GeocodeFailure("Geocoding service returned an invalid response") from e

        items = data.get("items") if isinstance(data, dict) else None
        if not items:
            logger.info("geocode_address_not_found", address=address)
            raise GeocodeFailure("Address not found")

        position = items[0].get("position") or {}
        try:
            coordinate = Coordinate(lat=position["lat"], lng=position["lng"])
        except (KeyError, ValueError) as e:
            raise GeocodeFailure("Address not found") from e

        logger.debug("geocode_resolved", lat=coordinate.lat, lng=coordinate.lng)
        return coordinate
