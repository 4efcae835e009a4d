"""Dashboard state container with change notification and persistence."""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationError

from polygon_weather.coloring.geometry import validate_ring
from polygon_weather.coloring.resolver import apply_color_at_time
from polygon_weather.config import FALLBACK_COLOR
from polygon_weather.dashboard.layers import LayerRegistry
from polygon_weather.weather.models import (
    ColorRule, DashboardSnapshot, DataSource, LatLng, MapState, Polygon, TimelineState, ensure_utc, utc_now
)

logger = logging.getLogger(__name__)

Listener = Callable[["DashboardState"], None]


def default_data_source() -> DataSource:
    """Temperature data source with blue/green/red bands."""
    return DataSource(
        id="temperature",
        name="Temperature",
        field="temperature_2m",
        rules=[
            ColorRule(id="1", operator="<", value=10, color="#3b82f6"),  # Blue for cold
            ColorRule(id="2", operator=">=", value=10, color="#22c55e"),  # Green for moderate
            ColorRule(id="3", operator=">=", value=25, color="#ef4444"),  # Red for hot
        ],
    )


class DashboardState(BaseModel):
    """Full dashboard state. Only the DashboardSnapshot part is persisted."""
    polygons: List[Polygon] = Field(default_factory=list)
    data_sources: List[DataSource] = Field(default_factory=lambda: [default_data_source()])
    timeline: TimelineState = Field(default_factory=TimelineState)
    map: MapState = Field(default_factory=MapState)
    is_drawing: bool = False
    selected_polygon: Optional[str] = None
    editing_polygon: Optional[str] = None

    def snapshot(self) -> DashboardSnapshot:
        return DashboardSnapshot(
            polygons=self.polygons,
            data_sources=self.data_sources,
            timeline=self.timeline,
        )


class DashboardStore:
    """Holds the dashboard state and notifies subscribers of every change.

    State objects are never mutated in place; each action builds a new
    state, persists the snapshot (when a path is configured) and then calls
    the listeners with it. The store also owns the layer registry so that
    removing a polygon drops its map layer association.
    """

    def __init__(self, path: Optional[Path] = None):
        """Initialize the store.

        Args:
            path: JSON file to persist polygons, data sources and timeline to
        """
        self.path = Path(path) if path else None
        self.layers = LayerRegistry()
        self._listeners: List[Listener] = []
        self._state = self._load()

    @property
    def state(self) -> DashboardState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes) -> DashboardState:
        self._state = self._state.model_copy(update=changes)
        self._save()
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    # Persistence

    def _load(self) -> DashboardState:
        if self.path is None or not self.path.exists():
            return DashboardState()

        try:
            snapshot = DashboardSnapshot.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Could not load dashboard state from {self.path}, starting fresh: {e}")
            return DashboardState()

        logger.info(
            f"Loaded dashboard state from {self.path}: {len(snapshot.polygons)} polygons, "
            f"{len(snapshot.data_sources)} data sources"
        )
        return DashboardState(
            polygons=snapshot.polygons,
            data_sources=snapshot.data_sources,
            timeline=snapshot.timeline,
        )

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self._state.snapshot().model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            # In-memory state stays authoritative
            logger.error(f"Could not save dashboard state to {self.path}: {e}")

    # Timeline actions

    def set_timeline_mode(self, mode: Literal["single", "range"]) -> None:
        self._set(timeline=self._state.timeline.model_copy(update={"mode": mode}))

    def set_selected_time(self, selected_time: datetime) -> None:
        self._set(timeline=self._state.timeline.model_copy(
            update={"selected_time": ensure_utc(selected_time)}
        ))

    def set_time_range(
        self,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None
    ) -> None:
        """Set one or both range bounds. A missing bound keeps its current value."""
        timeline = self._state.timeline
        start_time = ensure_utc(start_time) if start_time is not None else timeline.start_time
        end_time = ensure_utc(end_time) if end_time is not None else timeline.end_time
        if start_time is None or end_time is None:
            raise ValueError("Timeline range needs both a start and an end")
        if end_time < start_time:
            raise ValueError("Timeline range end must not be before its start")
        self._set(timeline=self._state.timeline.model_copy(
            update={"start_time": start_time, "end_time": end_time}
        ))

    # Polygon actions

    def get_polygon(self, polygon_id: str) -> Polygon:
        for polygon in self._state.polygons:
            if polygon.id == polygon_id:
                return polygon
        raise KeyError(polygon_id)

    def add_polygon(
        self,
        name: str,
        coordinates: Sequence[LatLng],
        data_source: str,
        color: str = FALLBACK_COLOR,
        layer_id: Optional[str] = None
    ) -> Polygon:
        """Create a polygon with a fresh id and creation time.

        Raises:
            InvalidGeometry: If the ring is not a valid closed outline
        """
        validate_ring(coordinates)
        polygon = Polygon(
            id=str(uuid.uuid4()),
            name=name,
            coordinates=list(coordinates),
            data_source=data_source,
            color=color,
            created_at=utc_now(),
        )
        if layer_id is not None:
            self.layers.bind(layer_id, polygon.id)

        self._set(polygons=[*self._state.polygons, polygon])
        logger.info(f"Added polygon {polygon.name} ({polygon.id})")
        return polygon

    def update_polygon(self, polygon_id: str, **updates) -> Polygon:
        """Replace a polygon with a revalidated copy carrying the updates."""
        current = self.get_polygon(polygon_id)
        updates.pop("id", None)
        if "coordinates" in updates:
            validate_ring(updates["coordinates"])

        updated = Polygon.model_validate({**dict(current), **updates})
        self._set(polygons=[updated if p.id == polygon_id else p for p in self._state.polygons])
        return updated

    def put_polygon(self, polygon: Polygon) -> Polygon:
        """Store a polygon returned by a service call in place of its old version."""
        self.get_polygon(polygon.id)
        self._set(polygons=[polygon if p.id == polygon.id else p for p in self._state.polygons])
        return polygon

    def recolor_polygons(self, target_time: datetime) -> List[Polygon]:
        """Recolor every polygon that has a time series for target_time.

        Polygons without a series or whose data source is gone keep their
        current color.
        """
        data_sources = {ds.id: ds for ds in self._state.data_sources}
        polygons = []
        for polygon in self._state.polygons:
            data_source = data_sources.get(polygon.data_source)
            if data_source is not None and polygon.time_series_data is not None:
                polygon = apply_color_at_time(polygon, target_time, data_source)
            polygons.append(polygon)

        self._set(polygons=polygons)
        return polygons

    def remove_polygon(self, polygon_id: str) -> None:
        self.get_polygon(polygon_id)
        self.layers.unbind_polygon(polygon_id)

        state = self._state
        self._set(
            polygons=[p for p in state.polygons if p.id != polygon_id],
            selected_polygon=None if state.selected_polygon == polygon_id else state.selected_polygon,
            editing_polygon=None if state.editing_polygon == polygon_id else state.editing_polygon,
        )
        logger.info(f"Removed polygon {polygon_id}")

    def set_selected_polygon(self, polygon_id: Optional[str] = None) -> None:
        self._set(selected_polygon=polygon_id)

    def set_editing_polygon(self, polygon_id: Optional[str] = None) -> None:
        self._set(editing_polygon=polygon_id)

    # Data source actions

    def get_data_source(self, data_source_id: str) -> DataSource:
        for data_source in self._state.data_sources:
            if data_source.id == data_source_id:
                return data_source
        raise KeyError(data_source_id)

    def add_data_source(
        self,
        name: str,
        field: str,
        rules: Sequence[ColorRule] = (),
        data_source_id: Optional[str] = None
    ) -> DataSource:
        data_source = DataSource(
            id=data_source_id or str(uuid.uuid4()),
            name=name,
            field=field,
            rules=list(rules),
        )
        if any(ds.id == data_source.id for ds in self._state.data_sources):
            raise ValueError(f"Data source '{data_source.id}' already exists")

        self._set(data_sources=[*self._state.data_sources, data_source])
        return data_source

    def update_data_source(self, data_source_id: str, **updates) -> DataSource:
        current = self.get_data_source(data_source_id)
        updates.pop("id", None)
        updated = DataSource.model_validate({**dict(current), **updates})
        self._set(data_sources=[
            updated if ds.id == data_source_id else ds for ds in self._state.data_sources
        ])
        return updated

    def remove_data_source(self, data_source_id: str) -> None:
        self.get_data_source(data_source_id)
        self._set(data_sources=[ds for ds in self._state.data_sources if ds.id != data_source_id])

    # Map actions

    def set_map_center(self, center: LatLng) -> None:
        self._set(map=self._state.map.model_copy(update={"center": center}))

    def set_map_zoom(self, zoom: int) -> None:
        self._set(map=self._state.map.model_copy(update={"zoom": zoom}))

    def set_map_bounds(self, bounds: Tuple[LatLng, LatLng]) -> None:
        self._set(map=self._state.map.model_copy(update={"bounds": bounds}))

    # Drawing actions

    def set_is_drawing(self, is_drawing: bool) -> None:
        self._set(is_drawing=is_drawing)

    def reset(self) -> None:
        self.layers.clear()
        self._state = DashboardState()
        self._set()
