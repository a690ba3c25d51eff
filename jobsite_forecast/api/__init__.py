"""API package exports."""

from jobsite_forecast.api.middleware import CorrelationIdMiddleware
from jobsite_forecast.api.routes import router

__all__ = ["router", "CorrelationIdMiddleware"]
