"""Weather fetching and coloring for polygons."""

import asyncio
import logging
from typing import List, Optional

from polygon_weather.coloring.geometry import centroid
from polygon_weather.coloring.rules import resolve_color
from polygon_weather.coloring.sampler import WeatherVariable, variable_for_data_source
from polygon_weather.config import BATCH_CONCURRENCY, BATCH_DELAY_SECONDS, FALLBACK_COLOR
from polygon_weather.weather.client import OpenMeteoClient, WeatherProviderError
from polygon_weather.weather.models import DataSource, Polygon, TimeSeries, utc_now

logger = logging.getLogger(__name__)


class PolygonWeatherService:
    """Fetches weather for polygon centroids and keeps it fresh.

    Fetch failures never propagate out of the per-polygon methods: the
    polygon comes back with the fallback color and without the data that
    could not be fetched.
    """

    def __init__(
        self,
        client: Optional[OpenMeteoClient] = None,
        batch_delay_seconds: float = BATCH_DELAY_SECONDS
    ):
        """Initialize the polygon weather service.

        Args:
            client: Weather client instance (creates default if None)
            batch_delay_seconds: Pause between batches of concurrent fetches
        """
        self.client = client or OpenMeteoClient()
        self.batch_delay_seconds = batch_delay_seconds

    async def fetch_polygon_weather(self, polygon: Polygon, data_source: DataSource) -> Polygon:
        """Fetch current weather for a polygon and color it.

        Args:
            polygon: Polygon to fetch weather for
            data_source: Data source whose rules color the polygon

        Returns:
            Updated polygon with weather snapshot and color
        """
        lat, lon = centroid(polygon.coordinates)
        logger.info(f"Fetching weather for polygon {polygon.name} at centroid: {lat}, {lon}")

        try:
            weather = await self.client.get_current_weather(lat, lon)
        except (WeatherProviderError, ValueError) as e:
            logger.error(f"Failed to fetch weather data for polygon {polygon.name}: {e}")
            return polygon.model_copy(update={"color": FALLBACK_COLOR, "weather_data": None})

        if variable_for_data_source(data_source.id) is WeatherVariable.WIND_SPEED:
            value = weather.wind_speed
        else:
            value = weather.temperature

        color = resolve_color(value, data_source.rules)
        logger.info(f"Weather data applied to polygon {polygon.name}: {value} -> {color}")

        return polygon.model_copy(update={"color": color, "weather_data": weather})

    async def fetch_polygon_time_series(self, polygon: Polygon) -> Polygon:
        """Fetch the past and forecast hourly series for a polygon.

        Returns:
            Updated polygon with time series data, or without any if the fetch failed
        """
        lat, lon = centroid(polygon.coordinates)
        logger.info(f"Fetching time series data for polygon {polygon.name} at centroid: {lat}, {lon}")

        try:
            samples = await self.client.get_time_series(lat, lon)
        except (WeatherProviderError, ValueError) as e:
            logger.error(f"Failed to fetch time series data for polygon {polygon.name}: {e}")
            return polygon.model_copy(update={"time_series_data": None})

        series = TimeSeries(data=samples, centroid=(lat, lon), last_updated=utc_now())
        logger.info(f"Time series data fetched for polygon {polygon.name}: {len(samples)} data points")

        return polygon.model_copy(update={"time_series_data": series})

    async def fetch_multiple_polygon_weather(
        self,
        polygons: List[Polygon],
        data_source: DataSource,
        concurrency: int = BATCH_CONCURRENCY
    ) -> List[Polygon]:
        """Fetch weather for several polygons, `concurrency` at a time.

        Returns:
            Updated polygons in input order
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")

        results = []
        for start in range(0, len(polygons), concurrency):
            batch = polygons[start:start + concurrency]
            results.extend(await asyncio.gather(
                *(self.fetch_polygon_weather(polygon, data_source) for polygon in batch)
            ))

            # Be gentle with the API between batches
            if start + concurrency < len(polygons):
                await asyncio.sleep(self.batch_delay_seconds)

        return results

    async def refresh_polygon_weather_if_stale(
        self,
        polygon: Polygon,
        data_source: DataSource,
        force: bool = False,
        include_time_series: bool = True
    ) -> Polygon:
        """Refresh a polygon's weather when its snapshot is stale or missing.

        Args:
            polygon: Polygon to refresh
            data_source: Data source whose rules color the polygon
            force: Refresh even if the snapshot is fresh
            include_time_series: Also refetch the timeline series

        Returns:
            Updated polygon, or the same polygon if nothing needed refreshing
        """
        if not force and polygon.weather_data is not None and not polygon.weather_data.is_stale():
            logger.debug(f"Weather data for polygon {polygon.name} is still fresh, skipping refresh")
            return polygon

        logger.info(f"Refreshing weather data for polygon {polygon.name}")

        if not include_time_series:
            return await self.fetch_polygon_weather(polygon, data_source)

        updated, with_series = await asyncio.gather(
            self.fetch_polygon_weather(polygon, data_source),
            self.fetch_polygon_time_series(polygon),
        )
        return updated.model_copy(update={"time_series_data": with_series.time_series_data})

    async def refresh_time_series_if_stale(self, polygon: Polygon) -> Polygon:
        """Refetch the time series when it is missing or stale."""
        series = polygon.time_series_data
        if series is not None and not series.is_stale():
            return polygon
        return await self.fetch_polygon_time_series(polygon)

    async def aclose(self):
        """Close the weather client."""
        if self.client:
            try:
                await self.client.aclose()
            except Exception as e:
                logger.error(f"Error closing weather client: {e}")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()
