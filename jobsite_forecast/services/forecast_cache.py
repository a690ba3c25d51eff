"""Geo-temporal forecast cache with write-through persistence."""

import asyncio
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Optional, Sequence
from zoneinfo import ZoneInfo

import structlog

from jobsite_forecast.config import Settings
from jobsite_forecast.models.geo import Coordinate
from jobsite_forecast.models.weather import WeatherRecord, neutral_default
from jobsite_forecast.services.forecast_provider import (
    ForecastProvider,
    ProviderFetchFailure,
    within_business_hours,
)
from jobsite_forecast.services.forecast_store import (
    ForecastStore,
    StoreQueryFailure,
    document_id,
)

logger = structlog.get_logger(__name__)

# Write-through tasks still running; drained on shutdown
_pending_writes: set[asyncio.Task] = set()


def schedule_write(coro) -> asyncio.Task:
    """Run a persistence coroutine as a tracked background task.

    Args:
        coro: Coroutine to run in the background

    Returns:
        The created asyncio Task
    """
    task = asyncio.create_task(coro)
    _pending_writes.add(task)
    task.add_done_callback(_pending_writes.discard)
    return task


async def await_pending_writes(timeout: float = 5.0) -> None:
    """Wait for in-flight write-through tasks during shutdown.

    Args:
        timeout: Maximum seconds to wait for pending tasks
    """
    if not _pending_writes:
        return

    logger.info("draining_pending_forecast_writes", count=len(_pending_writes))
    try:
        await asyncio.wait_for(
            asyncio.gather(*_pending_writes, return_exceptions=True),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "pending_forecast_writes_timeout",
            remaining=len(_pending_writes),
            timeout=timeout,
        )


def select_closest(
    records: Sequence[WeatherRecord], target: Optional[datetime]
) -> Optional[WeatherRecord]:
    """Pick the record nearest in time to target.

    Without a target the chronologically first record wins. Ties go to
    the earlier record in the sequence.
    """
    if not records:
        return None
    if target is None:
        return min(records, key=lambda r: r.forecast_time)
    return min(records, key=lambda r: abs((r.forecast_time - target).total_seconds()))


class ForecastCache:
    """Looks up cached forecasts near a coordinate, fetching on a miss.

    ``get_forecast`` never raises for operational failures: store errors
    degrade to a cache miss, provider errors to the neutral default record.
    """

    def __init__(
        self,
        store: ForecastStore,
        provider: ForecastProvider,
        ttl: timedelta = timedelta(hours=3),
        tolerance_deg: float = 0.01,
        tz: tzinfo = timezone.utc,
        business_hours: tuple[int, int] = (7, 18),
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.provider = provider
        self.ttl = ttl
        self.tolerance_deg = tolerance_deg
        self.tz = tz
        self.business_hours = business_hours
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(
        cls, store: ForecastStore, provider: ForecastProvider, settings: Settings
    ) -> "ForecastCache":
        return cls(
            store=store,
            provider=provider,
            ttl=timedelta(seconds=settings.forecast_cache_ttl_seconds),
            tolerance_deg=settings.forecast_match_tolerance_deg,
            tz=ZoneInfo(settings.service_timezone),
            business_hours=(settings.business_hours_start, settings.business_hours_end),
        )

    def _localize(self, target: datetime) -> datetime:
        """Naive target dates are taken to be in the service timezone."""
        if target.tzinfo is None:
            return target.replace(tzinfo=self.tz)
        return target

    def _is_usable(
        self,
        record: WeatherRecord,
        coordinate: Coordinate,
        now: datetime,
        target: Optional[datetime],
    ) -> bool:
        start, end = self.business_hours
        if abs(record.coordinate.lng - coordinate.lng) > self.tolerance_deg:
            return False
        if now - record.cached_at >= self.ttl:
            return False
        if not within_business_hours(record.forecast_time, self.tz, start, end):
            return False
        if target is not None:
            forecast_day = record.forecast_time.astimezone(self.tz).date()
            if forecast_day != target.astimezone(self.tz).date():
                return False
        return True

    async def lookup(
        self,
        coordinate: Coordinate,
        target: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Optional[WeatherRecord]:
        """Return the first fresh stored record matching the request.

        No ranking is applied: candidates come back in store order and
        the first one passing every filter is used.
        """
        now = now or self._clock()
        try:
            candidates = await self.store.query_latitude_range(
                coordinate.lat - self.tolerance_deg,
                coordinate.lat + self.tolerance_deg,
            )
        except StoreQueryFailure as e:
            logger.warning(
                "forecast_store_query_failed",
                backend=self.store.name,
                error=str(e),
            )
            return None

        for record in candidates:
            if self._is_usable(record, coordinate, now, target):
                return record
        return None

    async def _persist(self, records: Sequence[WeatherRecord]) -> int:
        """Write every record; failures are logged and skipped.

        Returns:
            Number of records written
        """
        results = await asyncio.gather(
            *(self.store.put(document_id(r), r) for r in records),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, Exception)]
        for failure in failures:
            logger.warning(
                "forecast_store_write_failed",
                backend=self.store.name,
                error=str(failure),
                error_type=type(failure).__name__,
            )
        written = len(records) - len(failures)
        logger.debug("forecast_records_persisted", written=written, failed=len(failures))
        return written

    async def get_forecast(
        self, coordinate: Coordinate, target_date: Optional[datetime] = None
    ) -> WeatherRecord:
        """Get the forecast for a coordinate, optionally for a given day.

        Args:
            coordinate: Job site location
            target_date: Scheduled time of the job; naive values are read
                in the service timezone

        Returns:
            A cached or freshly fetched record, or the neutral default
        """
        try:
            target = self._localize(target_date) if target_date else None
            now = self._clock()

            cached = await self.lookup(coordinate, target, now)
            if cached is not None:
                logger.info(
                    "forecast_cache_hit",
                    lat=coordinate.lat,
                    lng=coordinate.lng,
                    forecast_time=cached.forecast_time.isoformat(),
                )
                return cached

            logger.info("forecast_cache_miss", lat=coordinate.lat, lng=coordinate.lng)

            try:
                records = await self.provider.fetch(coordinate)
            except ProviderFetchFailure as e:
                logger.warning(
                    "forecast_provider_failed",
                    lat=coordinate.lat,
                    lng=coordinate.lng,
                    reason=e.reason,
                    status_code=e.status_code,
                )
                return neutral_default(coordinate, now)

            if records:
                # Shielded so an abandoned request still finishes its writes
                await asyncio.shield(schedule_write(self._persist(records)))

            selected = select_closest(records, target)
            if selected is None:
                logger.warning(
                    "forecast_no_business_hour_slots",
                    lat=coordinate.lat,
                    lng=coordinate.lng,
                )
                return neutral_default(coordinate, now)
            return selected

        except Exception as e:
            logger.error(
                "forecast_unexpected_error",
                lat=coordinate.lat,
                lng=coordinate.lng,
                error=str(e),
                error_type=type(e).__name__,
            )
            return neutral_default(coordinate)
