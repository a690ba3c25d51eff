"""API routes for forecasts, service areas and health."""

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobsite_forecast.api.dependencies import (
    get_forecast_cache,
    get_forecast_store,
    get_geocoding_service,
    get_region_classifier,
)
from jobsite_forecast.models.geo import (
    ClassifyResponse,
    Coordinate,
    LocateRequest,
    LocateResponse,
)
from jobsite_forecast.models.weather import ForecastResponse
from jobsite_forecast.services.forecast_cache import ForecastCache
from jobsite_forecast.services.forecast_store import ForecastStore
from jobsite_forecast.services.geocoding_service import GeocodeFailure, GeocodingService
from jobsite_forecast.services.region_service import RegionClassifier
from jobsite_forecast.services.suitability_service import is_suitable, suitability_message

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(store: ForecastStore = Depends(get_forecast_store)) -> dict:
    """Health check endpoint.

    Returns:
        Status, timestamp in ISO8601 format and forecast store health
    """
    store_healthy = await store.health_check()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "forecast_store": {
            "backend": store.name,
            "status": "healthy" if store_healthy else "unhealthy",
        },
    }


@router.get("/forecast", response_model=ForecastResponse, tags=["Forecast"])
async def get_forecast(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    target_date: Optional[datetime] = Query(
        default=None, description="Scheduled job time (ISO8601)"
    ),
    cache: ForecastCache = Depends(get_forecast_cache),
) -> ForecastResponse:
    """Forecast for a job site with installation suitability."""
    record = await cache.get_forecast(Coordinate(lat=lat, lng=lng), target_date)
    return ForecastResponse(
        forecast=record,
        suitable=is_suitable(record),
        message=suitability_message(record),
    )


@router.get("/regions", tags=["Regions"])
async def list_regions(
    classifier: RegionClassifier = Depends(get_region_classifier),
) -> dict:
    """Service areas as a GeoJSON FeatureCollection, in priority order."""
    return classifier.to_geojson()


@router.get("/regions/classify", response_model=ClassifyResponse, tags=["Regions"])
async def classify_coordinate(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    classifier: RegionClassifier = Depends(get_region_classifier),
) -> ClassifyResponse:
    """Service area tag for a coordinate."""
    coordinate = Coordinate(lat=lat, lng=lng)
    return ClassifyResponse(coordinate=coordinate, tag=classifier.classify(coordinate))


@router.post("/regions/locate", response_model=LocateResponse, tags=["Regions"])
async def locate_address(
    body: LocateRequest,
    geocoder: GeocodingService = Depends(get_geocoding_service),
    classifier: RegionClassifier = Depends(get_region_classifier),
) -> LocateResponse:
    """Geocode a job address and tag it with its service area."""
    try:
        coordinate = await geocoder.geocode(body.address)
    except GeocodeFailure as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    tag = classifier.classify(coordinate)
    logger.info("address_located", tag=tag.value)
    return LocateResponse(address=body.address, coordinate=coordinate, tag=tag)
