"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobsite_forecast.api.middleware import CorrelationIdMiddleware
from jobsite_forecast.api.routes import router
from jobsite_forecast.config import Settings, get_settings
from jobsite_forecast.services.forecast_cache import ForecastCache, await_pending_writes
from jobsite_forecast.services.forecast_provider import ForecastProvider
from jobsite_forecast.services.forecast_store import (
    ForecastStore,
    InMemoryForecastStore,
    PostgresForecastStore,
    RedisForecastStore,
)
from jobsite_forecast.services.geocoding_service import GeocodingService
from jobsite_forecast.services.logging_service import configure_logging, get_logger
from jobsite_forecast.services.region_service import RegionClassifier


async def build_forecast_store(settings: Settings) -> ForecastStore:
    """Create the configured store, degrading to in-memory if it is unreachable."""
    logger = get_logger("main")

    if settings.forecast_store_backend == "postgres":
        try:
            from jobsite_forecast.database import get_pool, init_database, run_migrations

            await init_database()
            await run_migrations()
            logger.info("database_initialized")
            return PostgresForecastStore(await get_pool())
        except Exception as e:
            logger.warning(
                "database_initialization_failed",
                error=str(e),
                note="Continuing with in-memory forecast store - cached forecasts will not persist",
            )

    elif settings.forecast_store_backend == "redis":
        from jobsite_forecast.services.redis_service import get_redis

        client = await get_redis()
        if client is not None:
            return RedisForecastStore(client)
        logger.warning(
            "redis_initialization_failed",
            note="Continuing with in-memory forecast store - cached forecasts will not persist",
        )

    return InMemoryForecastStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler: builds and tears down shared services."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.weather_api_timeout))
    store = await build_forecast_store(settings)
    provider = ForecastProvider.from_settings(http_client, settings)

    app.state.http_client = http_client
    app.state.forecast_store = store
    app.state.forecast_cache = ForecastCache.from_settings(store, provider, settings)
    app.state.region_classifier = RegionClassifier.from_file(settings.service_areas_file)
    app.state.geocoding_service = GeocodingService.from_settings(http_client, settings)

    logger.info(
        "application_started",
        forecast_store=store.name,
        log_level=settings.log_level,
        service_timezone=settings.service_timezone,
    )

    yield

    # Let write-through persistence finish before closing connections
    await await_pending_writes(timeout=5.0)
    await http_client.aclose()

    if isinstance(store, PostgresForecastStore):
        from jobsite_forecast.database import close_database

        await close_database()
    elif isinstance(store, RedisForecastStore):
        from jobsite_forecast.services.redis_service import close_redis

        await close_redis()

    logger.info("application_shutdown")


app = FastAPI(
    title="Jobsite Forecast API",
    description="Forecast cache and service area classification for installation scheduling",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return validation errors as 400 with the offending field."""
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning("validation_error", correlation_id=correlation_id, detail=detail)

    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "detail": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


# CORS for the scheduling dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(router)
