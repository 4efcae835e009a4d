"""Configuration settings for the polygon weather service."""

import os
from typing import Final
from dotenv import load_dotenv

load_dotenv()

# API Configuration
OPEN_METEO_FORECAST_URL: Final[str] = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_ARCHIVE_URL: Final[str] = "https://archive-api.open-meteo.com/v1/archive"
USER_AGENT: Final[str] = "PolygonWeatherService/0.1 (user@example.com)"
GEOCODING_USER_AGENT: str = os.getenv("GEOCODING_USER_AGENT", "polygon-weather-geocoder")
HOURLY_FIELDS: Final[tuple] = ("temperature_2m", "windspeed_10m")

# Server configuration
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8000"))
DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

# Polygon rules
MIN_VERTICES: Final[int] = 3
MAX_VERTICES: Final[int] = 12
FALLBACK_COLOR: Final[str] = "#9ca3af"  # Neutral gray

# Timeline sampling
SAMPLE_TOLERANCE_HOURS: float = float(os.getenv("SAMPLE_TOLERANCE_HOURS", "2"))  # Nearest sample must be within this window
HISTORY_DAYS: int = int(os.getenv("HISTORY_DAYS", "15"))
FORECAST_DAYS: int = int(os.getenv("FORECAST_DAYS", "15"))

# Freshness thresholds
WEATHER_MAX_AGE_MINUTES: int = int(os.getenv("WEATHER_MAX_AGE_MINUTES", "30"))
TIME_SERIES_MAX_AGE_HOURS: int = int(os.getenv("TIME_SERIES_MAX_AGE_HOURS", "6"))

# Fetch retry and batching
FETCH_MAX_ATTEMPTS: int = int(os.getenv("FETCH_MAX_ATTEMPTS", "4"))  # Initial attempt + 3 retries (1s, 2s, 4s)
FETCH_BACKOFF_SECONDS: float = float(os.getenv("FETCH_BACKOFF_SECONDS", "1"))
FETCH_TIMEOUT_SECONDS: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "30"))
BATCH_CONCURRENCY: int = int(os.getenv("BATCH_CONCURRENCY", "3"))
BATCH_DELAY_SECONDS: float = float(os.getenv("BATCH_DELAY_SECONDS", "0.1"))

# Dashboard persistence (empty disables it)
STORE_PATH: str = os.getenv("STORE_PATH", "")

# Redis cache configuration
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
CACHE_EXPIRE_SECONDS: int = int(os.getenv("CACHE_EXPIRE_SECONDS", "60"))  # 60 seconds default
CACHE_PREFIX: str = os.getenv("CACHE_PREFIX", "polygon-weather")

# Rate limiting configuration
RATE_LIMIT_REQUESTS_PER_SECOND: int = int(os.getenv("RATE_LIMIT_REQUESTS_PER_SECOND", "20"))
RATE_LIMIT_REDIS_KEY_PREFIX: str = os.getenv("RATE_LIMIT_REDIS_KEY_PREFIX", "rate_limit")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
