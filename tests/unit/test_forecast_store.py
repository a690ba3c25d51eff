"""Unit tests for forecast store backends."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from jobsite_forecast.models.geo import Coordinate
from jobsite_forecast.models.weather import to_document
from jobsite_forecast.services.forecast_store import (
    InMemoryForecastStore,
    PostgresForecastStore,
    RedisForecastStore,
    StoreQueryFailure,
    StoreWriteFailure,
    document_id,
)
from tests.factories import MARANA_CENTER, TUCSON_CENTER, local_time, make_record


class TestDocumentId:
    """Tests for the composite document key."""

    def test_bucket_and_timestamp(self):
        record = make_record(
            datetime(2026, 10, 20, 19, tzinfo=timezone.utc), coordinate=MARANA_CENTER
        )
        assert document_id(record) == "32.44_-111.22_1792522800000"

    def test_same_bucket_and_time_share_id(self):
        when = local_time(2026, 10, 20, 12)
        a = make_record(when, coordinate=Coordinate(lat=32.2226, lng=-110.9747))
        b = make_record(when, coordinate=Coordinate(lat=32.2231, lng=-110.9749), temperature=90)
        assert document_id(a) == document_id(b)


class TestInMemoryForecastStore:
    """Tests for the bucket-indexed in-memory store."""

    @pytest.mark.asyncio
    async def test_range_query_is_inclusive(self):
        store = InMemoryForecastStore()
        low = make_record(local_time(2026, 10, 20, 9), coordinate=Coordinate(lat=32.21, lng=-110.97))
        high = make_record(local_time(2026, 10, 20, 9), coordinate=Coordinate(lat=32.23, lng=-110.97))
        outside = make_record(local_time(2026, 10, 20, 9), coordinate=Coordinate(lat=32.2351, lng=-110.97))
        for record in (low, high, outside):
            await store.put(document_id(record), record)

        assert len(store) == 3
        results = await store.query_latitude_range(32.21, 32.23)

        assert results == [low, high]

    @pytest.mark.asyncio
    async def test_negative_latitudes(self):
        store = InMemoryForecastStore()
        record = make_record(local_time(2026, 10, 20, 9), coordinate=Coordinate(lat=-33.8688, lng=151.2093))
        await store.put(document_id(record), record)

        assert await store.query_latitude_range(-33.8788, -33.8588) == [record]
        assert await store.query_latitude_range(33.8588, 33.8788) == []

    @pytest.mark.asyncio
    async def test_overwrite_is_idempotent(self):
        store = InMemoryForecastStore()
        record = make_record(local_time(2026, 10, 20, 9))
        await store.put("key", record)
        await store.put("key", record)

        assert len(store) == 1
        assert await store.query_latitude_range(32.2, 32.3) == [record]

    @pytest.mark.asyncio
    async def test_overwrite_moving_bucket(self):
        store = InMemoryForecastStore()
        first = make_record(local_time(2026, 10, 20, 9), coordinate=TUCSON_CENTER)
        moved = make_record(local_time(2026, 10, 20, 9), coordinate=MARANA_CENTER)
        await store.put("key", first)
        await store.put("key", moved)

        assert len(store) == 1
        assert await store.query_latitude_range(32.2, 32.3) == []
        assert await store.query_latitude_range(32.4, 32.5) == [moved]

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await InMemoryForecastStore().health_check() is True


def _mock_pool(conn: AsyncMock) -> MagicMock:
    pool = MagicMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.acquire.return_value.__aexit__.return_value = False
    return pool


class TestPostgresForecastStore:
    """Tests for the Postgres backend with a mocked pool."""

    @pytest.mark.asyncio
    async def test_query_maps_rows(self):
        record = make_record(local_time(2026, 10, 20, 12))
        doc = to_document(record)
        conn = AsyncMock()
        conn.fetch.return_value = [
            {
                "temperature": doc["temperature"],
                "conditions": doc["conditions"],
                "precipitation": doc["precipitation"],
                "wind_speed": doc["windSpeed"],
                "cached_at": doc["timestamp"],
                "lat": doc["lat"],
                "lng": doc["lng"],
                "forecast_date": doc["forecastDate"],
            }
        ]
        store = PostgresForecastStore(_mock_pool(conn))

        results = await store.query_latitude_range(32.21, 32.23)

        assert results == [record]
        args = conn.fetch.call_args.args
        assert "lat >= $1 AND lat <= $2" in args[0]
        assert args[1:] == (32.21, 32.23)

    @pytest.mark.asyncio
    async def test_put_upserts(self):
        record = make_record(local_time(2026, 10, 20, 12))
        conn = AsyncMock()
        store = PostgresForecastStore(_mock_pool(conn))

        await store.put("doc-1", record)

        sql, *values = conn.execute.call_args.args
        assert "ON CONFLICT (id) DO UPDATE" in sql
        assert values[0] == "doc-1"
        assert values[1:5] == [72, "Clear", 10, 7]
        assert values[7] == record.coordinate.lng
        assert values[8] == record.forecast_time

    @pytest.mark.asyncio
    async def test_query_failure_is_wrapped(self):
        conn = AsyncMock()
        conn.fetch.side_effect = ConnectionError("gone")
        store = PostgresForecastStore(_mock_pool(conn))

        with pytest.raises(StoreQueryFailure):
            await store.query_latitude_range(0, 1)

    @pytest.mark.asyncio
    async def test_invalid_row_is_a_query_failure(self):
        conn = AsyncMock()
        conn.fetch.return_value = [{"temperature": 70, "conditions": "Clear"}]
        store = PostgresForecastStore(_mock_pool(conn))

        with pytest.raises(StoreQueryFailure):
            await store.query_latitude_range(32.21, 32.23)

    @pytest.mark.asyncio
    async def test_write_failure_is_wrapped(self):
        conn = AsyncMock()
        conn.execute.side_effect = ConnectionError("gone")
        store = PostgresForecastStore(_mock_pool(conn))

        with pytest.raises(StoreWriteFailure):
            await store.put("doc-1", make_record(local_time(2026, 10, 20, 12)))

    @pytest.mark.asyncio
    async def test_health_check(self):
        conn = AsyncMock()
        conn.fetchval.return_value = 1
        assert await PostgresForecastStore(_mock_pool(conn)).health_check() is True

        conn.fetchval.side_effect = ConnectionError("gone")
        assert await PostgresForecastStore(_mock_pool(conn)).health_check() is False


class TestRedisForecastStore:
    """Tests for the Redis backend with a mocked client."""

    @pytest.mark.asyncio
    async def test_put_writes_document_and_index(self):
        client = AsyncMock()
        record = make_record(local_time(2026, 10, 20, 12))
        store = RedisForecastStore(client)

        await store.put("doc-1", record)

        key, payload = client.set.call_args.args
        assert key == "weather_forecast:doc-1"
        doc = json.loads(payload)
        assert doc["windSpeed"] == 7
        assert doc["forecastDate"] == record.forecast_time.isoformat()
        client.zadd.assert_awaited_once_with(
            "weather_forecast:lat_index", {"doc-1": record.coordinate.lat}
        )

    @pytest.mark.asyncio
    async def test_query_reads_index_then_documents(self):
        client = AsyncMock()
        record = make_record(local_time(2026, 10, 20, 12))
        doc = to_document(record)
        doc["timestamp"] = doc["timestamp"].isoformat()
        doc["forecastDate"] = doc["forecastDate"].isoformat()
        client.zrangebyscore.return_value = ["doc-1", "doc-gone"]
        client.mget.return_value = [json.dumps(doc), None]
        store = RedisForecastStore(client)

        results = await store.query_latitude_range(32.21, 32.23)

        assert results == [record]
        client.zrangebyscore.assert_awaited_once_with("weather_forecast:lat_index", 32.21, 32.23)
        client.mget.assert_awaited_once_with(
            ["weather_forecast:doc-1", "weather_forecast:doc-gone"]
        )

    @pytest.mark.asyncio
    async def test_empty_index_skips_mget(self):
        client = AsyncMock()
        client.zrangebyscore.return_value = []

        assert await RedisForecastStore(client).query_latitude_range(0, 1) == []
        client.mget.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failures_are_wrapped(self):
        client = AsyncMock()
        client.zrangebyscore.side_effect = ConnectionError("gone")
        client.set.side_effect = ConnectionError("gone")
        store = RedisForecastStore(client)

        with pytest.raises(StoreQueryFailure):
            await store.query_latitude_range(0, 1)
        with pytest.raises(StoreWriteFailure):
            await store.put("doc-1", make_record(local_time(2026, 10, 20, 12)))

    @pytest.mark.asyncio
    async def test_undecodable_document_is_a_query_failure(self):
        client = AsyncMock()
        client.zrangebyscore.return_value = ["doc-1", "doc-2"]
        client.mget.return_value = ['{"temperature": 70}', "not json"]

        with pytest.raises(StoreQueryFailure):
            await RedisForecastStore(client).query_latitude_range(32.21, 32.23)
