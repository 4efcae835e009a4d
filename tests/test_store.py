"""Tests for the dashboard store and layer registry."""

import json
from datetime import datetime, timedelta

import pytest

from polygon_weather.coloring.geometry import InvalidGeometry
from polygon_weather.config import FALLBACK_COLOR
from polygon_weather.dashboard.layers import LayerRegistry
from polygon_weather.dashboard.store import DashboardStore
from polygon_weather.weather.models import ColorRule, TimelineState

from conftest import SQUARE, T0

TRIANGLE = [(0.0, 0.0), (0.0, 1.0), (1.0, 0.0), (0.0, 0.0)]


@pytest.fixture
def store():
    return DashboardStore()


def test_defaults(store):
    state = store.state
    assert state.polygons == []
    assert [ds.id for ds in state.data_sources] == ["temperature"]
    assert state.map.center == (52.52, 13.41)
    assert state.map.zoom == 10
    assert state.timeline.mode == "single"


def test_add_polygon_assigns_id_and_time(store):
    first = store.add_polygon("A", SQUARE, "temperature")
    second = store.add_polygon("B", TRIANGLE, "temperature")

    assert first.id != second.id
    assert first.created_at is not None
    assert [p.name for p in store.state.polygons] == ["A", "B"]


def test_add_polygon_validates_ring(store):
    with pytest.raises(InvalidGeometry):
        store.add_polygon("Open", SQUARE[:-1], "temperature")
    assert store.state.polygons == []


def test_subscribers_are_notified(store):
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.add_polygon("A", SQUARE, "temperature")
    store.set_is_drawing(True)
    assert len(seen) == 2
    assert seen[-1].is_drawing is True
    assert len(seen[-1].polygons) == 1

    unsubscribe()
    store.set_is_drawing(False)
    assert len(seen) == 2


def test_states_are_not_mutated(store):
    before = store.state
    store.add_polygon("A", SQUARE, "temperature")
    assert before.polygons == []


def test_update_polygon(store):
    polygon = store.add_polygon("A", SQUARE, "temperature")

    updated = store.update_polygon(polygon.id, name="Renamed", color="#000000")

    assert updated.name == "Renamed"
    assert updated.id == polygon.id
    assert store.get_polygon(polygon.id).color == "#000000"


def test_update_polygon_rejects_bad_ring(store):
    polygon = store.add_polygon("A", SQUARE, "temperature")
    with pytest.raises(InvalidGeometry):
        store.update_polygon(polygon.id, coordinates=[(0, 0), (1, 1), (0, 0)])


def test_unknown_polygon(store):
    with pytest.raises(KeyError):
        store.get_polygon("missing")
    with pytest.raises(KeyError):
        store.update_polygon("missing", name="x")
    with pytest.raises(KeyError):
        store.remove_polygon("missing")


def test_remove_polygon_clears_selection_and_layer(store):
    polygon = store.add_polygon("A", SQUARE, "temperature", layer_id="leaflet-42")
    store.set_selected_polygon(polygon.id)
    store.set_editing_polygon(polygon.id)
    assert store.layers.polygon_for_layer("leaflet-42") == polygon.id

    store.remove_polygon(polygon.id)

    assert store.state.polygons == []
    assert store.state.selected_polygon is None
    assert store.state.editing_polygon is None
    assert store.layers.polygon_for_layer("leaflet-42") is None


def test_remove_other_polygon_keeps_selection(store):
    keep = store.add_polygon("A", SQUARE, "temperature")
    drop = store.add_polygon("B", TRIANGLE, "temperature")
    store.set_selected_polygon(keep.id)

    store.remove_polygon(drop.id)

    assert store.state.selected_polygon == keep.id


def test_data_sources(store):
    wind = store.add_data_source(
        "Wind Speed", "windspeed_10m",
        rules=[ColorRule(id="1", operator=">", value=30, color="purple")],
        data_source_id="windspeed",
    )
    assert store.get_data_source("windspeed") == wind

    with pytest.raises(ValueError):
        store.add_data_source("Again", "windspeed_10m", data_source_id="windspeed")

    updated = store.update_data_source("windspeed", rules=[])
    assert updated.rules == []
    assert updated.name == "Wind Speed"

    store.remove_data_source("windspeed")
    with pytest.raises(KeyError):
        store.get_data_source("windspeed")


def test_generated_data_source_id(store):
    source = store.add_data_source("Custom", "temperature_2m")
    assert source.id
    assert source.id != "temperature"


def test_timeline_actions(store):
    store.set_timeline_mode("range")
    store.set_selected_time(T0)
    store.set_time_range(T0, T0 + timedelta(days=1))

    timeline = store.state.timeline
    assert timeline.mode == "range"
    assert timeline.selected_time == T0
    assert timeline.end_time - timeline.start_time == timedelta(days=1)

    with pytest.raises(ValueError):
        store.set_time_range(T0, T0 - timedelta(hours=1))


def test_map_actions(store):
    store.set_map_center((48.85, 2.35))
    store.set_map_zoom(7)
    store.set_map_bounds(((48.0, 2.0), (49.0, 3.0)))

    assert store.state.map.center == (48.85, 2.35)
    assert store.state.map.zoom == 7
    assert store.state.map.bounds == ((48.0, 2.0), (49.0, 3.0))


def test_reset(store):
    store.add_polygon("A", SQUARE, "temperature", layer_id="layer-1")
    store.set_is_drawing(True)

    store.reset()

    assert store.state.polygons == []
    assert store.state.is_drawing is False
    assert len(store.layers) == 0


def test_persistence_round_trip(tmp_path):
    path = tmp_path / "dashboard.json"
    store = DashboardStore(path=path)
    polygon = store.add_polygon("A", SQUARE, "temperature")
    store.set_selected_time(T0)
    store.set_map_zoom(3)
    store.set_is_drawing(True)

    reloaded = DashboardStore(path=path)

    assert reloaded.get_polygon(polygon.id).model_dump() == polygon.model_dump()
    assert reloaded.state.timeline.selected_time == T0
    # Viewport and transient flags are not persisted
    assert reloaded.state.map.zoom == 10
    assert reloaded.state.is_drawing is False


def test_persisted_fields(tmp_path):
    path = tmp_path / "dashboard.json"
    store = DashboardStore(path=path)
    store.add_polygon("A", SQUARE, "temperature")

    saved = json.loads(path.read_text())
    assert set(saved) == {"polygons", "data_sources", "timeline"}


def test_corrupt_state_file_starts_fresh(tmp_path):
    path = tmp_path / "dashboard.json"
    path.write_text("{not json")

    store = DashboardStore(path=path)

    assert store.state.polygons == []
    assert [ds.id for ds in store.state.data_sources] == ["temperature"]


def test_layer_registry_rebinding():
    layers = LayerRegistry()
    layers.bind("layer-1", "p1")
    layers.bind("layer-2", "p1")

    assert layers.polygon_for_layer("layer-1") is None
    assert layers.layer_for_polygon("p1") == "layer-2"

    layers.bind("layer-2", "p2")
    assert layers.layer_for_polygon("p1") is None
    assert layers.polygon_for_layer("layer-2") == "p2"
    assert len(layers) == 1


def test_layer_registry_unbind():
    layers = LayerRegistry()
    layers.bind("layer-1", "p1")

    assert layers.unbind_layer("layer-1") == "p1"
    assert layers.layer_for_polygon("p1") is None
    assert layers.unbind_polygon("p1") is None


def test_time_range_mixes_naive_and_aware(store):
    store.set_time_range(datetime(2024, 6, 1), T0)

    timeline = store.state.timeline
    assert timeline.start_time.tzinfo is not None
    assert timeline.end_time - timeline.start_time == timedelta(hours=12)


def test_time_range_single_bound(store):
    with pytest.raises(ValueError):
        store.set_time_range(end_time=T0)

    store.set_time_range(T0, T0 + timedelta(days=1))
    store.set_time_range(end_time=T0 + timedelta(days=3))

    assert store.state.timeline.start_time == T0
    assert store.state.timeline.end_time == T0 + timedelta(days=3)


def test_naive_selected_time_is_utc(store):
    store.set_selected_time(datetime(2024, 6, 1, 12))
    assert store.state.timeline.selected_time == T0


def test_recolor_polygons(store, series):
    with_series = store.add_polygon("A", SQUARE, "temperature")
    store.update_polygon(with_series.id, time_series_data=series)
    without_series = store.add_polygon("B", SQUARE, "temperature", color="#123456")
    orphan = store.add_polygon("C", SQUARE, "gone", color="#abcdef")
    store.update_polygon(orphan.id, time_series_data=series)

    store.recolor_polygons(T0 + timedelta(hours=3))
    assert store.get_polygon(with_series.id).color == "#ef4444"
    assert store.get_polygon(with_series.id).weather_data.temperature == 26.0
    assert store.get_polygon(without_series.id).color == "#123456"
    assert store.get_polygon(orphan.id).color == "#abcdef"

    # No sample near that time: gray, last snapshot kept
    store.recolor_polygons(T0 + timedelta(hours=10))
    assert store.get_polygon(with_series.id).color == FALLBACK_COLOR
    assert store.get_polygon(with_series.id).weather_data.temperature == 26.0


def test_save_failure_keeps_state_and_notifies(tmp_path):
    # A directory at the store path cannot be written as a file
    store = DashboardStore(path=tmp_path)
    seen = []
    store.subscribe(seen.append)

    polygon = store.add_polygon("A", SQUARE, "temperature")

    assert store.get_polygon(polygon.id).name == "A"
    assert len(seen) == 1


def test_timeline_state_normalizes_times():
    timeline = TimelineState(start_time=datetime(2024, 6, 1, 12), end_time=T0)
    assert timeline.start_time == T0
    assert timeline.start_time.tzinfo is not None
