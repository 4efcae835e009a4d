"""Pytest fixtures and shared fakes."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from polygon_weather.weather.client import OpenMeteoClient, WeatherProviderError
from polygon_weather.weather.models import (
    ColorRule, CurrentWeather, DataSource, Polygon, TimeSeries, WeatherSample
)

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

SQUARE = [(0.0, 0.0), (0.0, 2.0), (2.0, 2.0), (2.0, 0.0), (0.0, 0.0)]


def hourly_payload(start: datetime, temperatures, wind_speeds=None) -> dict:
    """Open-Meteo style hourly payload starting at start (naive GMT times)."""
    wind_speeds = wind_speeds if wind_speeds is not None else [5.0] * len(temperatures)
    return {
        "latitude": 1.0,
        "longitude": 1.0,
        "hourly": {
            "time": [
                (start + timedelta(hours=i)).strftime("%Y-%m-%dT%H:%M")
                for i in range(len(temperatures))
            ],
            "temperature_2m": temperatures,
            "windspeed_10m": wind_speeds,
        },
    }


def make_client(handler, **kwargs) -> OpenMeteoClient:
    """OpenMeteoClient answering from handler without backoff delays."""
    kwargs.setdefault("backoff_seconds", 0)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenMeteoClient(http_client=http_client, **kwargs)


class FakeWeatherClient:
    """Stand-in for OpenMeteoClient returning canned data."""

    def __init__(self, current=None, series=None, error=None):
        self.current = current
        self.series = series or []
        self.error = error
        self.current_calls = 0
        self.series_calls = 0
        self.closed = False

    async def get_current_weather(self, lat, lon):
        self.current_calls += 1
        if self.error:
            raise self.error
        return self.current.model_copy(update={"centroid": (lat, lon)})

    async def get_time_series(self, lat, lon):
        self.series_calls += 1
        if self.error:
            raise self.error
        return list(self.series)

    async def aclose(self):
        self.closed = True


class FakeGeocoder:
    """Stand-in for GeocodingService without network or timezone data."""

    def __init__(self, place="Testville"):
        self.place = place

    def reverse_geocode(self, lat, lon):
        return self.place

    def local_time(self, lat, lon, moment):
        return moment.strftime('%Y-%m-%d %H:%M UTC')


@pytest.fixture
def band_rules():
    """>=25 red, >=10 green, <10 blue."""
    return [
        ColorRule(id="hot", operator=">=", value=25, color="red"),
        ColorRule(id="mild", operator=">=", value=10, color="green"),
        ColorRule(id="cold", operator="<", value=10, color="blue"),
    ]


@pytest.fixture
def temperature_source(band_rules):
    return DataSource(id="temperature", name="Temperature", field="temperature_2m", rules=band_rules)


@pytest.fixture
def wind_source():
    return DataSource(
        id="windspeed",
        name="Wind Speed",
        field="windspeed_10m",
        rules=[
            ColorRule(id="calm", operator="<", value=20, color="white"),
            ColorRule(id="windy", operator=">=", value=20, color="purple"),
        ],
    )


@pytest.fixture
def series():
    """5C at t0, 12C at t0+1h, 26C at t0+3h."""
    return TimeSeries(
        data=[
            WeatherSample(timestamp=T0, temperature=5.0, wind_speed=3.0),
            WeatherSample(timestamp=T0 + timedelta(hours=1), temperature=12.0, wind_speed=25.0),
            WeatherSample(timestamp=T0 + timedelta(hours=3), temperature=26.0, wind_speed=None),
        ],
        centroid=(1.0, 1.0),
        last_updated=T0,
    )


@pytest.fixture
def polygon(series):
    return Polygon(
        id="p1",
        name="Field",
        coordinates=SQUARE,
        data_source="temperature",
        created_at=T0,
        time_series_data=series,
    )


@pytest.fixture
def current_weather():
    return CurrentWeather(temperature=27.5, wind_speed=12.0, timestamp=T0, centroid=(0.0, 0.0))


@pytest.fixture
def failing_client():
    return FakeWeatherClient(error=WeatherProviderError("Network error"))
