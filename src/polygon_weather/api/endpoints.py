"""Weather lookup endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi_cache.decorator import cache

from polygon_weather.config import (
    CACHE_EXPIRE_SECONDS, FALLBACK_COLOR, SAMPLE_TOLERANCE_HOURS
)
from polygon_weather.weather.client import OpenMeteoClient, WeatherProviderError
from polygon_weather.weather.models import CurrentWeather

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/weather", tags=["weather"])


def get_weather_client(request: Request) -> OpenMeteoClient:
    """Dependency to get the shared weather client."""
    return request.app.state.weather_service.client


@router.get("/current", response_model=CurrentWeather)
@cache(expire=CACHE_EXPIRE_SECONDS)
async def get_current_weather(
    lat: float = Query(..., ge=-90, le=90, description="Latitude in decimal degrees"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude in decimal degrees"),
    client: OpenMeteoClient = Depends(get_weather_client)
) -> CurrentWeather:
    """Get current weather for a point.

    Raises:
        HTTPException: If the weather provider fails
    """
    try:
        return await client.get_current_weather(lat, lon)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WeatherProviderError as e:
        logger.error(f"Weather lookup failed for ({lat}, {lon}): {e}")
        raise HTTPException(status_code=502, detail="Weather service temporarily unavailable")


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Health status response
    """
    return {"status": "healthy", "service": "polygon-weather"}


@router.get("/info")
async def get_service_info() -> dict:
    """Get service information.

    Returns:
        Service information including coloring defaults and features
    """
    return {
        "service": "Polygon Weather Service",
        "version": "0.1.0",
        "coloring": {
            "fallback_color": FALLBACK_COLOR,
            "sample_tolerance_hours": SAMPLE_TOLERANCE_HOURS,
        },
        "features": [
            "Polygon coloring by weather threshold rules",
            "Timeline sampling of historical and forecast weather",
        ],
        "data_source": "Open-Meteo forecast and archive APIs"
    }
