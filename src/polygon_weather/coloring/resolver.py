"""Resolve a polygon's display color at a point in time."""

import logging
from datetime import datetime, timedelta
from typing import NamedTuple, Optional

from polygon_weather.coloring.rules import resolve_color
from polygon_weather.coloring.sampler import (
    DEFAULT_TOLERANCE, WeatherVariable, sample_at, variable_for_data_source
)
from polygon_weather.config import FALLBACK_COLOR
from polygon_weather.weather.models import CurrentWeather, DataSource, Polygon, ensure_utc

logger = logging.getLogger(__name__)


class ColorResolution(NamedTuple):
    """Color for one polygon at one instant."""
    color: str
    value: Optional[float]
    snapshot: Optional[CurrentWeather]


def color_for_polygon_at_time(
    polygon: Polygon,
    target_time: datetime,
    data_source: DataSource,
    tolerance: timedelta = DEFAULT_TOLERANCE
) -> ColorResolution:
    """Color a polygon from its time series at target_time.

    Returns the fallback color without a snapshot when the series has no
    sample within tolerance.
    """
    target_time = ensure_utc(target_time)
    variable = variable_for_data_source(data_source.id)
    value = sample_at(polygon.time_series_data, target_time, variable, tolerance)

    if value is None:
        logger.info(
            f"No {data_source.name.lower()} data found for polygon {polygon.name} "
            f"at {target_time.isoformat()}"
        )
        return ColorResolution(FALLBACK_COLOR, None, None)

    color = resolve_color(value, data_source.rules)

    # Keep the other variable from the last snapshot
    previous = polygon.weather_data
    if variable is WeatherVariable.TEMPERATURE:
        temperature = value
        wind_speed = previous.wind_speed if previous else 0.0
    else:
        temperature = previous.temperature if previous else 0.0
        wind_speed = value

    snapshot = CurrentWeather(
        temperature=temperature,
        wind_speed=wind_speed,
        timestamp=target_time,
        centroid=polygon.time_series_data.centroid,
    )
    return ColorResolution(color, value, snapshot)


def apply_color_at_time(
    polygon: Polygon,
    target_time: datetime,
    data_source: DataSource,
    tolerance: timedelta = DEFAULT_TOLERANCE
) -> Polygon:
    """Return the polygon recolored for target_time.

    The existing snapshot is kept when there is no data for that time.
    """
    resolution = color_for_polygon_at_time(polygon, target_time, data_source, tolerance)
    update = {"color": resolution.color}
    if resolution.snapshot is not None:
        update["weather_data"] = resolution.snapshot
    return polygon.model_copy(update=update)
