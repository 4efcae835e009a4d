"""HTTP client for the Open-Meteo weather API."""

import asyncio
import logging
from datetime import date, timedelta
from itertools import zip_longest
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from polygon_weather.config import (
    FETCH_BACKOFF_SECONDS, FETCH_MAX_ATTEMPTS, FETCH_TIMEOUT_SECONDS,
    FORECAST_DAYS, HISTORY_DAYS, HOURLY_FIELDS,
    OPEN_METEO_ARCHIVE_URL, OPEN_METEO_FORECAST_URL, USER_AGENT
)
from polygon_weather.weather.models import (
    CurrentWeather, OpenMeteoCurrentResponse, OpenMeteoHourlyResponse, WeatherSample
)

logger = logging.getLogger(__name__)


class WeatherProviderError(Exception):
    """Raised when weather data cannot be fetched from the provider."""
    pass


def is_retryable(exception: BaseException) -> bool:
    """Transport errors, 429 and 5xx responses are worth retrying."""
    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status == 429 or status >= 500
    return isinstance(exception, httpx.RequestError)


def validate_coordinates(lat: float, lon: float) -> None:
    if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        raise ValueError(f"Invalid coordinates: lat={lat}, lon={lon}")


class OpenMeteoClient:
    """Async client for fetching current and hourly weather from Open-Meteo."""

    def __init__(
        self,
        forecast_url: str = OPEN_METEO_FORECAST_URL,
        archive_url: str = OPEN_METEO_ARCHIVE_URL,
        user_agent: str = USER_AGENT,
        max_attempts: int = FETCH_MAX_ATTEMPTS,
        backoff_seconds: float = FETCH_BACKOFF_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """Initialize the weather client.

        Args:
            forecast_url: Open-Meteo forecast endpoint
            archive_url: Open-Meteo historical archive endpoint
            user_agent: User-Agent header for API requests
            max_attempts: Attempts per request, including the first one
            backoff_seconds: First retry delay; doubles on each retry
            http_client: Preconfigured client (creates default if None)
        """
        self.forecast_url = forecast_url
        self.archive_url = archive_url
        self.user_agent = user_agent
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        # Waits backoff, 2x backoff, 4x backoff, ...
        self.wait = wait_exponential(multiplier=backoff_seconds)
        self.client = http_client or httpx.AsyncClient(
            headers={"User-Agent": self.user_agent},
            timeout=FETCH_TIMEOUT_SECONDS
        )

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET a JSON document, retrying transient failures.

        Raises:
            WeatherProviderError: If the request still fails after retries,
                fails with a non-retryable status, or returns invalid JSON
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception(is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self.client.get(url, params=params)
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error from Open-Meteo: {e.response.status_code} - {e.response.text}")
            raise WeatherProviderError(
                f"Weather API request failed: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Request error to Open-Meteo: {e}")
            raise WeatherProviderError(f"Weather API request failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from Open-Meteo: {e}")
            raise WeatherProviderError("Weather API returned invalid JSON") from e

    async def get_current_weather(self, lat: float, lon: float) -> CurrentWeather:
        """Fetch current conditions for given coordinates.

        Raises:
            ValueError: If coordinates are invalid
            WeatherProviderError: If the request fails or the response is malformed
        """
        validate_coordinates(lat, lon)
        logger.info(f"Fetching current weather for lat={lat}, lon={lon}")

        data = await self._get_json(self.forecast_url, {
            "latitude": lat,
            "longitude": lon,
            "current_weather": "true",
            "timezone": "GMT",
        })

        try:
            current = OpenMeteoCurrentResponse(**data).current_weather
        except ValidationError as e:
            logger.error(f"Invalid current weather response format: {e}")
            raise WeatherProviderError(f"Invalid current weather response format: {e}") from e

        return CurrentWeather(
            temperature=current.temperature,
            wind_speed=current.windspeed or 0.0,
            timestamp=current.time,
            centroid=(lat, lon),
        )

    async def get_historical_series(
        self,
        lat: float,
        lon: float,
        days: int = HISTORY_DAYS,
        today: Optional[date] = None
    ) -> List[WeatherSample]:
        """Fetch hourly samples for the past `days` days up to today."""
        validate_coordinates(lat, lon)
        end_date = today or date.today()
        start_date = end_date - timedelta(days=days)
        logger.info(f"Fetching historical weather for lat={lat}, lon={lon} from {start_date} to {end_date}")

        data = await self._get_json(self.archive_url, {
            "latitude": lat,
            "longitude": lon,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "hourly": ",".join(HOURLY_FIELDS),
            "timezone": "GMT",
        })
        samples = self._parse_hourly(data)
        logger.info(f"Historical weather fetched: {len(samples)} data points")
        return samples

    async def get_forecast_series(
        self,
        lat: float,
        lon: float,
        days: int = FORECAST_DAYS
    ) -> List[WeatherSample]:
        """Fetch hourly forecast samples for the next `days` days."""
        validate_coordinates(lat, lon)
        logger.info(f"Fetching forecast weather for lat={lat}, lon={lon} for next {days} days")

        data = await self._get_json(self.forecast_url, {
            "latitude": lat,
            "longitude": lon,
            "hourly": ",".join(HOURLY_FIELDS),
            "forecast_days": days,
            "timezone": "GMT",
        })
        samples = self._parse_hourly(data)
        logger.info(f"Forecast weather fetched: {len(samples)} data points")
        return samples

    async def get_time_series(self, lat: float, lon: float) -> List[WeatherSample]:
        """Fetch past and forecast samples and merge them in time order."""
        historical, forecast = await asyncio.gather(
            self.get_historical_series(lat, lon),
            self.get_forecast_series(lat, lon),
        )
        samples = sorted(historical + forecast, key=lambda sample: sample.timestamp)
        logger.info(
            f"Complete time series fetched: {len(historical)} historical + "
            f"{len(forecast)} forecast = {len(samples)} data points"
        )
        return samples

    def _parse_hourly(self, data: Dict[str, Any]) -> List[WeatherSample]:
        """Convert an hourly payload into samples.

        Raises:
            WeatherProviderError: If the payload does not have the expected shape
        """
        try:
            hourly = OpenMeteoHourlyResponse(**data).hourly
        except ValidationError as e:
            logger.error(f"Invalid hourly response format: {e}")
            raise WeatherProviderError(f"Invalid hourly response format: {e}") from e

        samples = []
        for timestamp, temperature, wind_speed in zip_longest(
            hourly.time, hourly.temperature_2m, hourly.windspeed_10m
        ):
            if timestamp is None:
                break
            samples.append(WeatherSample(
                timestamp=timestamp,
                temperature=temperature,
                wind_speed=wind_speed,
            ))
        return samples

    async def aclose(self):
        """Close the async HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()
