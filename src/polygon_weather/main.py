"""Main FastAPI application for the polygon weather service."""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi_cache import FastAPICache
from fastapi_cache.backends.redis import RedisBackend

from polygon_weather.api.dashboard import router as dashboard_router
from polygon_weather.api.endpoints import router as weather_router
from polygon_weather.config import (
    HOST, PORT, DEBUG, REDIS_URL, CACHE_PREFIX, STORE_PATH,
    RATE_LIMIT_ENABLED, RATE_LIMIT_REQUESTS_PER_SECOND
)
from polygon_weather.dashboard.store import DashboardStore
from polygon_weather.logging_config import configure_logging
from polygon_weather.middleware.rate_limit import RateLimitMiddleware
from polygon_weather.weather.geocoding import GeocodingService
from polygon_weather.weather.service import PolygonWeatherService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    try:
        logger.info(f"Connecting to Redis at {REDIS_URL}")
        redis_client = redis.from_url(REDIS_URL)
        FastAPICache.init(RedisBackend(redis_client), prefix=CACHE_PREFIX)
        logger.info("Cache initialized with Redis backend")

        logger.info("Starting Polygon Weather Service")
        yield
    except Exception as e:
        logger.error(f"Startup error: {e}")
        logger.error(traceback.format_exc())
        raise
    finally:
        logger.info("Shutting down Polygon Weather Service")
        await app.state.weather_service.aclose()


def create_app(
    store: Optional[DashboardStore] = None,
    weather_service: Optional[PolygonWeatherService] = None,
    geocoding_service: Optional[GeocodingService] = None,
    rate_limit_enabled: bool = RATE_LIMIT_ENABLED
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        store: Dashboard store (creates one persisting to STORE_PATH if None)
        weather_service: Polygon weather service (creates default if None)
        geocoding_service: Geocoding service (creates default if None)
        rate_limit_enabled: Whether to install the rate limiting middleware

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Polygon Weather Service",
        description="REST API that colors map polygons by Open-Meteo weather using threshold rules",
        version="0.1.0",
        lifespan=lifespan
    )

    app.state.store = store or DashboardStore(path=STORE_PATH or None)
    app.state.weather_service = weather_service or PolygonWeatherService()
    app.state.geocoding_service = geocoding_service or GeocodingService()

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware, calls=RATE_LIMIT_REQUESTS_PER_SECOND)

    # Include API routers
    app.include_router(weather_router)
    app.include_router(dashboard_router)

    @app.get("/api", tags=["root"])
    async def api_info() -> dict:
        """API information endpoint.

        Returns:
            Basic service information
        """
        return {
            "message": "Polygon Weather Service",
            "docs": "/docs",
            "redoc": "/redoc",
            "polygons": "/polygons",
            "data_sources": "/data-sources",
            "timeline": "/timeline",
            "health": "/weather/health"
        }

    return app


def main() -> None:
    """Main entry point for the application."""
    configure_logging()
    logger.info(f"Starting server on {HOST}:{PORT}")
    uvicorn.run(
        "polygon_weather.main:create_app",
        factory=True,
        host=HOST,
        port=PORT,
        reload=DEBUG,
        log_level="info" if not DEBUG else "debug"
    )


if __name__ == "__main__":
    main()
