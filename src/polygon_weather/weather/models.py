"""Data models for the polygon weather service."""

from datetime import datetime, timedelta, timezone
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from polygon_weather.coloring.geometry import validate_ring
from polygon_weather.config import (
    FALLBACK_COLOR, TIME_SERIES_MAX_AGE_HOURS, WEATHER_MAX_AGE_MINUTES
)

LatLng = Tuple[float, float]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class WeatherSample(BaseModel):
    """One hourly point of a weather time series."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Sample time (UTC)")
    temperature: Optional[float] = Field(None, description="Air temperature at 2m in Celsius")
    wind_speed: Optional[float] = Field(None, description="Wind speed at 10m in km/h")

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class TimeSeries(BaseModel):
    """Historical and forecast samples fetched for a polygon centroid."""
    data: List[WeatherSample] = Field(default_factory=list, description="Samples sorted by timestamp")
    centroid: LatLng = Field(..., description="Coordinate the series was fetched for")
    last_updated: datetime = Field(default_factory=utc_now, description="When the series was fetched")

    @field_validator("last_updated")
    @classmethod
    def normalize_last_updated(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def is_stale(self, max_age_hours: float = TIME_SERIES_MAX_AGE_HOURS, now: Optional[datetime] = None) -> bool:
        """Check if the series is older than max_age_hours."""
        now = ensure_utc(now) if now else utc_now()
        return now - self.last_updated > timedelta(hours=max_age_hours)


class CurrentWeather(BaseModel):
    """Weather snapshot attached to a polygon."""
    temperature: float = Field(..., description="Temperature in Celsius")
    wind_speed: float = Field(0.0, description="Wind speed in km/h")
    timestamp: datetime = Field(..., description="Time the values refer to")
    centroid: LatLng = Field(..., description="Coordinate the values were fetched for")

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def is_stale(self, max_age_minutes: float = WEATHER_MAX_AGE_MINUTES, now: Optional[datetime] = None) -> bool:
        """Check if the snapshot is older than max_age_minutes."""
        now = ensure_utc(now) if now else utc_now()
        return now - self.timestamp > timedelta(minutes=max_age_minutes)


class ColorRule(BaseModel):
    """Single threshold rule mapping a value to a color."""
    id: str = Field(..., description="Rule identifier")
    operator: str = Field(..., description="One of =, ==, <, <=, >, >=, !=")
    value: float = Field(..., description="Threshold the value is compared against")
    color: str = Field(..., description="Color applied when the rule matches")


class DataSource(BaseModel):
    """A weather variable and the rules used to color polygons by it."""
    id: str = Field(..., description="Data source identifier, e.g. 'temperature' or 'windspeed'")
    name: str = Field(..., description="Display name")
    field: str = Field(..., description="Open-Meteo hourly field name")
    rules: List[ColorRule] = Field(default_factory=list, description="Coloring rules")


class Polygon(BaseModel):
    """User-drawn polygon with its cached weather data."""
    id: str = Field(..., description="Polygon identifier")
    name: str = Field(..., description="Display name")
    coordinates: List[LatLng] = Field(..., description="Closed ring of (lat, lng) vertices")
    data_source: str = Field(..., description="Identifier of the data source coloring this polygon")
    color: str = Field(FALLBACK_COLOR, description="Current display color")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    weather_data: Optional[CurrentWeather] = Field(None, description="Latest weather snapshot")
    time_series_data: Optional[TimeSeries] = Field(None, description="Hourly series for the timeline")

    @model_validator(mode="after")
    def check_ring(self) -> "Polygon":
        validate_ring(self.coordinates)
        return self


class TimelineState(BaseModel):
    """Timeline selection used to pick the coloring instant."""
    mode: Literal["single", "range"] = Field("single", description="Single instant or range")
    selected_time: Optional[datetime] = Field(None, description="Selected instant")
    start_time: Optional[datetime] = Field(None, description="Range start")
    end_time: Optional[datetime] = Field(None, description="Range end")

    @field_validator("selected_time", "start_time", "end_time")
    @classmethod
    def normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class TimelineHours(BaseModel):
    """Hourly slider positions over the timeline range."""
    start_time: datetime = Field(..., description="First hour of the range")
    end_time: datetime = Field(..., description="Last hour of the range")
    hours: List[datetime] = Field(..., description="Selectable hourly instants")
    selected_index: Optional[int] = Field(None, description="Slider position of the selected time")


class MapState(BaseModel):
    """Map viewport. Not persisted."""
    center: LatLng = Field((52.52, 13.41), description="Map center (Berlin by default)")
    zoom: int = Field(10, description="Zoom level")
    bounds: Optional[Tuple[LatLng, LatLng]] = Field(None, description="Visible bounds")


class DashboardSnapshot(BaseModel):
    """The part of the dashboard state persisted across sessions."""
    polygons: List[Polygon] = Field(default_factory=list)
    data_sources: List[DataSource] = Field(default_factory=list)
    timeline: TimelineState = Field(default_factory=TimelineState)


class PolygonColor(BaseModel):
    """Resolved color of a polygon at a point in time."""
    polygon_id: str = Field(..., description="Polygon identifier")
    name: str = Field(..., description="Polygon display name")
    color: str = Field(..., description="Resolved color")
    value: Optional[float] = Field(None, description="Sampled value, absent when no data")
    display_value: Optional[str] = Field(None, description="Sampled temperature formatted for display")
    label: Optional[str] = Field(None, description="Descriptive temperature label")
    weather_data: Optional[CurrentWeather] = Field(None, description="Sampled weather snapshot")
    local_time: Optional[str] = Field(None, description="Queried instant in the polygon's timezone")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")


class OpenMeteoCurrent(BaseModel):
    """current_weather block of an Open-Meteo forecast response."""
    temperature: float = Field(..., description="Temperature in Celsius")
    windspeed: Optional[float] = Field(None, description="Wind speed in km/h")
    time: datetime = Field(..., description="Observation time")


class OpenMeteoCurrentResponse(BaseModel):
    """Raw response from the Open-Meteo forecast API with current_weather=true."""
    latitude: float = Field(..., description="Grid cell latitude")
    longitude: float = Field(..., description="Grid cell longitude")
    current_weather: OpenMeteoCurrent = Field(..., description="Current conditions")


class OpenMeteoHourly(BaseModel):
    """hourly block of an Open-Meteo forecast or archive response."""
    time: List[datetime] = Field(..., description="Hourly timestamps")
    temperature_2m: List[Optional[float]] = Field(default_factory=list, description="Temperature values")
    windspeed_10m: List[Optional[float]] = Field(default_factory=list, description="Wind speed values")


class OpenMeteoHourlyResponse(BaseModel):
    """Raw hourly response from the Open-Meteo forecast or archive API."""
    latitude: float = Field(..., description="Grid cell latitude")
    longitude: float = Field(..., description="Grid cell longitude")
    hourly: OpenMeteoHourly = Field(..., description="Hourly series")
