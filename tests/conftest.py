"""Pytest configuration and fixtures."""

import os
from typing import Callable

import httpx
import pytest

# Keep tests independent of any local .env
os.environ.setdefault("FORECAST_STORE_BACKEND", "memory")
os.environ.setdefault("OPENWEATHERMAP_API_KEY", "test-weather-key")

from tests.factories import forecast_entry, local_time


@pytest.fixture
def forecast_payload() -> dict:
    """Forecast covering two local days, including slots outside business hours."""
    return {
        "cod": "200",
        "list": [
            forecast_entry(local_time(2026, 10, 20, 6), temp=58.2),
            forecast_entry(local_time(2026, 10, 20, 9), temp=66.5, pop=0.0),
            forecast_entry(local_time(2026, 10, 20, 12), temp=78.49, main="Clouds", pop=0.2),
            forecast_entry(local_time(2026, 10, 20, 15), temp=81.5, pop=0.255, wind=12.5),
            forecast_entry(local_time(2026, 10, 20, 18), temp=74.0),
            forecast_entry(local_time(2026, 10, 20, 21), temp=65.0),
            forecast_entry(local_time(2026, 10, 21, 12), temp=70.0, main="Rain", pop=0.8),
        ],
    }


@pytest.fixture
def mock_transport_client() -> Callable[[Callable], httpx.AsyncClient]:
    """Build an AsyncClient whose requests go to an in-process handler."""

    def _build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _build
