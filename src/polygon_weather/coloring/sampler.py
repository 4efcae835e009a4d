"""Nearest-sample lookup on polygon weather time series."""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from polygon_weather.config import SAMPLE_TOLERANCE_HOURS
from polygon_weather.weather.models import TimeSeries, ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = timedelta(hours=SAMPLE_TOLERANCE_HOURS)


class WeatherVariable(str, Enum):
    """Sample field a data source reads."""
    TEMPERATURE = "temperature"
    WIND_SPEED = "wind_speed"


DATA_SOURCE_VARIABLES = {
    "temperature": WeatherVariable.TEMPERATURE,
    "windspeed": WeatherVariable.WIND_SPEED,
}


def variable_for_data_source(data_source_id: str) -> WeatherVariable:
    """Map a data source id to the sample field it colors by.

    Unknown ids fall back to temperature.
    """
    variable = DATA_SOURCE_VARIABLES.get(data_source_id)
    if variable is None:
        logger.warning(f"Unknown data source: {data_source_id}, defaulting to temperature")
        return WeatherVariable.TEMPERATURE
    return variable


def sample_at(
    series: Optional[TimeSeries],
    target: datetime,
    variable: WeatherVariable,
    tolerance: timedelta = DEFAULT_TOLERANCE
) -> Optional[float]:
    """Find the value of the sample closest to target.

    Samples without a value for the requested variable are skipped, so a
    farther valid sample is preferred over a closer empty one.

    Args:
        series: Polygon time series (None means nothing fetched yet)
        target: Instant to sample at
        variable: Field to read
        tolerance: Maximum distance between target and the chosen sample

    Returns:
        The sampled value, or None if no valid sample lies within tolerance
    """
    if series is None or not series.data:
        return None

    target = ensure_utc(target)
    closest_value = None
    min_diff = timedelta.max

    for sample in series.data:
        value = getattr(sample, variable.value)
        if value is None:
            continue

        diff = abs(sample.timestamp - target)
        if diff < min_diff:
            min_diff = diff
            closest_value = value

    if closest_value is None:
        logger.debug(f"No valid samples for {variable.value}")
        return None

    if min_diff > tolerance:
        logger.debug(
            f"Closest {variable.value} sample is {min_diff.total_seconds() / 60:.0f} minutes "
            f"from {target.isoformat()}, beyond tolerance"
        )
        return None

    return closest_value


def timeline_hours(start: datetime, end: datetime) -> List[datetime]:
    """Hourly instants from start to end inclusive."""
    hours = []
    current = start
    while current <= end:
        hours.append(current)
        current += timedelta(hours=1)
    return hours


def slider_value_to_time(value: int, start: datetime) -> datetime:
    return start + timedelta(hours=value)


def time_to_slider_value(moment: datetime, start: datetime) -> int:
    """Whole hours between start and moment, rounded down."""
    return int((moment - start) // timedelta(hours=1))
