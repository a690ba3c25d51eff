"""Persistent storage for normalized forecast records.

Every backend supports the same two operations the cache relies on: an
inclusive range query on latitude, and idempotent point writes keyed by
``{lat bucket}_{lng bucket}_{forecast epoch ms}``. Longitude, freshness
and time-of-day filtering happen in the cache after retrieval.
"""

import json
import math
from abc import ABC, abstractmethod

import asyncpg
import redis.asyncio as redis
import structlog

from jobsite_forecast.models.weather import WeatherRecord, from_document, to_document

logger = structlog.get_logger(__name__)

BUCKETS_PER_DEGREE = 100  # 0.01 degree buckets


class ForecastStoreError(Exception):
    """Base class for storage failures."""


class StoreQueryFailure(ForecastStoreError):
    """A range query against the store failed."""


class StoreWriteFailure(ForecastStoreError):
    """A record could not be written to the store."""


def document_id(record: WeatherRecord) -> str:
    """Composite key: rounded coordinate bucket plus forecast timestamp."""
    forecast_ms = int(record.forecast_time.timestamp() * 1000)
    return f"{record.coordinate.lat:.2f}_{record.coordinate.lng:.2f}_{forecast_ms}"


class ForecastStore(ABC):
    """Abstract interface every forecast storage backend implements."""

    name: str = "abstract"

    @abstractmethod
    async def query_latitude_range(
        self, lat_min: float, lat_max: float
    ) -> list[WeatherRecord]:
        """Return records with lat_min <= lat <= lat_max in backend order.

        Raises:
            StoreQueryFailure: If the backend query fails or a stored
                document cannot be decoded
        """

    @abstractmethod
    async def put(self, doc_id: str, record: WeatherRecord) -> None:
        """Write (or overwrite) a record under doc_id.

        Raises:
            StoreWriteFailure: If the backend write fails
        """

    async def health_check(self) -> bool:
        return True


class InMemoryForecastStore(ForecastStore):
    """Process-local store backed by a spatial bucket index.

    Records are grouped by 0.01 degree latitude bucket, so a range query
    only visits the buckets the range overlaps. Within a bucket records
    keep insertion order.
    """

    name = "memory"

    def __init__(self):
        self._buckets: dict[int, dict[str, WeatherRecord]] = {}
        self._bucket_by_id: dict[str, int] = {}

    @staticmethod
    def _bucket(lat: float) -> int:
        return math.floor(lat * BUCKETS_PER_DEGREE)

    def __len__(self) -> int:
        return len(self._bucket_by_id)

    async def query_latitude_range(
        self, lat_min: float, lat_max: float
    ) -> list[WeatherRecord]:
        results = []
        for bucket in range(self._bucket(lat_min), self._bucket(lat_max) + 1):
            for record in self._buckets.get(bucket, {}).values():
                if lat_min <= record.coordinate.lat <= lat_max:
                    results.append(record)
        return results

    async def put(self, doc_id: str, record: WeatherRecord) -> None:
        bucket = self._bucket(record.coordinate.lat)
        previous = self._bucket_by_id.get(doc_id)
        if previous is not None and previous != bucket:
            self._buckets[previous].pop(doc_id, None)
        self._buckets.setdefault(bucket, {})[doc_id] = record
        self._bucket_by_id[doc_id] = bucket


class PostgresForecastStore(ForecastStore):
    """Store backed by the weather_forecasts table (see migrations)."""

    name = "postgres"

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def query_latitude_range(
        self, lat_min: float, lat_max: float
    ) -> list[WeatherRecord]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT temperature, conditions, precipitation, wind_speed,
                           cached_at, lat, lng, forecast_date
                    FROM weather_forecasts
                    WHERE lat >= $1 AND lat <= $2
                    ORDER BY id
                    """,
                    lat_min,
                    lat_max,
                )
            return [
                from_document(
                    {
                        "temperature": row["temperature"],
                        "conditions": row["conditions"],
                        "precipitation": row["precipitation"],
                        "windSpeed": row["wind_speed"],
                        "timestamp": row["cached_at"],
                        "lat": row["lat"],
                        "lng": row["lng"],
                        "forecastDate": row["forecast_date"],
                    }
                )
                for row in rows
            ]
        except Exception as e:
            raise StoreQueryFailure(f"weather_forecasts range query failed: {e}") from e

    async def put(self, doc_id: str, record: WeatherRecord) -> None:
        doc = to_document(record)
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO weather_forecasts
                    (id, temperature, conditions, precipitation, wind_speed,
                     cached_at, lat, lng, forecast_date)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    ON CONFLICT (id) DO UPDATE SET
                        temperature = EXCLUDED.temperature,
                        conditions = EXCLUDED.conditions,
                        precipitation = EXCLUDED.precipitation,
                        wind_speed = EXCLUDED.wind_speed,
                        cached_at = EXCLUDED.cached_at,
                        lat = EXCLUDED.lat,
                        lng = EXCLUDED.lng,
                        forecast_date = EXCLUDED.forecast_date
                    """,
                    doc_id,
                    doc["temperature"],
                    doc["conditions"],
                    doc["precipitation"],
                    doc["windSpeed"],
                    doc["timestamp"],
                    doc["lat"],
                    doc["lng"],
                    doc["forecastDate"],
                )
        except Exception as e:
            raise StoreWriteFailure(f"weather_forecasts write failed for {doc_id}: {e}") from e

    async def health_check(self) -> bool:
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.warning("forecast_store_health_check_failed", backend=self.name, error=str(e))
            return False


class RedisForecastStore(ForecastStore):
    """Store backed by Redis JSON documents plus a latitude sorted set."""

    name = "redis"

    KEY_PREFIX = "weather_forecast"
    LAT_INDEX_KEY = "weather_forecast:lat_index"

    def __init__(self, client: redis.Redis):
        self.client = client

    def _key(self, doc_id: str) -> str:
        return f"{self.KEY_PREFIX}:{doc_id}"

    async def query_latitude_range(
        self, lat_min: float, lat_max: float
    ) -> list[WeatherRecord]:
        try:
            doc_ids = await self.client.zrangebyscore(self.LAT_INDEX_KEY, lat_min, lat_max)
            if not doc_ids:
                return []
            raw_docs = await self.client.mget([self._key(d) for d in doc_ids])
            # Index entries can outlive a manually deleted document
            return [from_document(json.loads(raw)) for raw in raw_docs if raw]
        except Exception as e:
            raise StoreQueryFailure(f"redis latitude range query failed: {e}") from e

    async def put(self, doc_id: str, record: WeatherRecord) -> None:
        doc = to_document(record)
        doc["timestamp"] = doc["timestamp"].isoformat()
        doc["forecastDate"] = doc["forecastDate"].isoformat()
        try:
            await self.client.set(self._key(doc_id), json.dumps(doc))
            await self.client.zadd(self.LAT_INDEX_KEY, {doc_id: doc["lat"]})
        except Exception as e:
            raise StoreWriteFailure(f"redis write failed for {doc_id}: {e}") from e

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.warning("forecast_store_health_check_failed", backend=self.name, error=str(e))
            return False
