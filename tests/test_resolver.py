"""Tests for polygon color resolution."""

from datetime import timedelta

from polygon_weather.coloring.resolver import apply_color_at_time, color_for_polygon_at_time
from polygon_weather.config import FALLBACK_COLOR

from conftest import T0


def test_colors_from_sample_at_target_time(polygon, temperature_source):
    resolution = color_for_polygon_at_time(polygon, T0 + timedelta(hours=1), temperature_source)

    assert resolution.color == "green"
    assert resolution.value == 12.0
    assert resolution.snapshot.temperature == 12.0
    assert resolution.snapshot.timestamp == T0 + timedelta(hours=1)
    assert resolution.snapshot.centroid == (1.0, 1.0)


def test_no_sample_within_tolerance(polygon, temperature_source):
    resolution = color_for_polygon_at_time(polygon, T0 + timedelta(hours=10), temperature_source)

    assert resolution.color == FALLBACK_COLOR
    assert resolution.value is None
    assert resolution.snapshot is None


def test_hot_and_cold_bands(polygon, temperature_source):
    assert color_for_polygon_at_time(polygon, T0, temperature_source).color == "blue"
    assert color_for_polygon_at_time(polygon, T0 + timedelta(hours=3), temperature_source).color == "red"


def test_polygon_without_series(polygon, temperature_source):
    bare = polygon.model_copy(update={"time_series_data": None})
    resolution = color_for_polygon_at_time(bare, T0, temperature_source)
    assert resolution == (FALLBACK_COLOR, None, None)


def test_wind_source_keeps_previous_temperature(polygon, wind_source, current_weather):
    with_snapshot = polygon.model_copy(update={"weather_data": current_weather})
    resolution = color_for_polygon_at_time(with_snapshot, T0 + timedelta(hours=1), wind_source)

    assert resolution.color == "purple"
    assert resolution.snapshot.wind_speed == 25.0
    assert resolution.snapshot.temperature == current_weather.temperature


def test_wind_source_without_previous_snapshot(polygon, wind_source):
    resolution = color_for_polygon_at_time(polygon, T0, wind_source)
    assert resolution.color == "white"
    assert resolution.snapshot.temperature == 0.0


def test_apply_color_at_time(polygon, temperature_source):
    updated = apply_color_at_time(polygon, T0 + timedelta(hours=1), temperature_source)

    assert updated.color == "green"
    assert updated.weather_data.temperature == 12.0
    # The input polygon is left untouched
    assert polygon.color == FALLBACK_COLOR
    assert polygon.weather_data is None


def test_apply_color_without_data_keeps_snapshot(polygon, temperature_source, current_weather):
    colored = polygon.model_copy(update={"color": "red", "weather_data": current_weather})
    updated = apply_color_at_time(colored, T0 + timedelta(hours=10), temperature_source)

    assert updated.color == FALLBACK_COLOR
    assert updated.weather_data == current_weather
