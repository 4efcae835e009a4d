"""Polygon, data source and timeline endpoints."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Literal, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from polygon_weather.coloring.geometry import InvalidGeometry, bounding_box, centroid, close_ring
from polygon_weather.coloring.resolver import color_for_polygon_at_time
from polygon_weather.coloring.rules import format_temperature, temperature_label
from polygon_weather.coloring.sampler import (
    WeatherVariable, slider_value_to_time, time_to_slider_value, timeline_hours, variable_for_data_source
)
from polygon_weather.config import FALLBACK_COLOR, FORECAST_DAYS, HISTORY_DAYS
from polygon_weather.dashboard.store import DashboardStore
from polygon_weather.weather.geocoding import GeocodingError
from polygon_weather.weather.models import (
    ColorRule, DataSource, LatLng, MapState, Polygon, PolygonColor, TimelineHours, TimelineState, utc_now
)
from polygon_weather.weather.service import PolygonWeatherService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


class PolygonCreate(BaseModel):
    """Request body for creating a polygon."""
    name: Optional[str] = Field(None, description="Display name (defaults to the centroid's place name)")
    coordinates: List[LatLng] = Field(..., description="Ring of (lat, lng) vertices, closed or open")
    data_source: str = Field("temperature", description="Data source coloring this polygon")
    layer_id: Optional[str] = Field(None, description="Map layer drawn for this polygon")


class PolygonUpdate(BaseModel):
    """Request body for updating a polygon."""
    name: Optional[str] = None
    coordinates: Optional[List[LatLng]] = None
    data_source: Optional[str] = None


class DataSourceCreate(BaseModel):
    """Request body for creating a data source."""
    id: Optional[str] = Field(None, description="Identifier (generated if omitted)")
    name: str
    field: str
    rules: List[ColorRule] = Field(default_factory=list)


class DataSourceUpdate(BaseModel):
    """Request body for updating a data source."""
    name: Optional[str] = None
    field: Optional[str] = None
    rules: Optional[List[ColorRule]] = None


class TimelineUpdate(BaseModel):
    """Request body for updating the timeline selection."""
    mode: Optional[Literal["single", "range"]] = None
    selected_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    slider_value: Optional[int] = Field(None, description="Hours after the range start to select")


def get_store(request: Request) -> DashboardStore:
    """Dependency to get the dashboard store."""
    return request.app.state.store


def get_polygon_service(request: Request) -> PolygonWeatherService:
    """Dependency to get the polygon weather service."""
    return request.app.state.weather_service


def lookup_polygon(store: DashboardStore, polygon_id: str) -> Polygon:
    try:
        return store.get_polygon(polygon_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Polygon '{polygon_id}' not found")


def lookup_data_source(store: DashboardStore, data_source_id: str) -> DataSource:
    try:
        return store.get_data_source(data_source_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Data source '{data_source_id}' not found")


# Polygons

@router.get("/polygons", response_model=List[Polygon])
async def list_polygons(store: DashboardStore = Depends(get_store)) -> List[Polygon]:
    return store.state.polygons


@router.post("/polygons", response_model=Polygon, status_code=201)
async def create_polygon(
    body: PolygonCreate,
    request: Request,
    store: DashboardStore = Depends(get_store)
) -> Polygon:
    """Register a drawn polygon.

    Open rings are closed automatically. Without a name the polygon is
    named after the place at its centroid.

    Raises:
        HTTPException: If the ring is not a valid polygon outline
    """
    ring = close_ring(body.coordinates)
    name = body.name

    try:
        if not name:
            lat, lon = centroid(ring)
            geocoder = request.app.state.geocoding_service
            name = await asyncio.to_thread(geocoder.reverse_geocode, lat, lon) or "Unnamed polygon"

        return store.add_polygon(
            name=name,
            coordinates=ring,
            data_source=body.data_source,
            layer_id=body.layer_id,
        )
    except InvalidGeometry as e:
        logger.warning(f"Rejected polygon: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/polygons/colors", response_model=List[PolygonColor])
async def get_polygon_colors(
    request: Request,
    at: Optional[datetime] = Query(None, description="Instant to color at (defaults to the timeline selection)"),
    data_source: Optional[str] = Query(None, description="Data source overriding each polygon's own"),
    store: DashboardStore = Depends(get_store)
) -> List[PolygonColor]:
    """Color every polygon from its time series at one instant."""
    target = at or store.state.timeline.selected_time or utc_now()
    override = lookup_data_source(store, data_source) if data_source else None
    geocoder = request.app.state.geocoding_service

    colors = []
    for polygon in store.state.polygons:
        source = override
        if source is None:
            try:
                source = store.get_data_source(polygon.data_source)
            except KeyError:
                logger.warning(f"Polygon {polygon.name} references missing data source {polygon.data_source}")

        if source is None:
            colors.append(PolygonColor(polygon_id=polygon.id, name=polygon.name, color=FALLBACK_COLOR))
            continue

        resolution = color_for_polygon_at_time(polygon, target, source)

        local_time = None
        if resolution.snapshot is not None:
            lat, lon = resolution.snapshot.centroid
            try:
                local_time = geocoder.local_time(lat, lon, resolution.snapshot.timestamp)
            except GeocodingError as e:
                logger.warning(f"Could not localize time for polygon {polygon.name}: {e}")

        display_value = label = None
        if resolution.value is not None and variable_for_data_source(source.id) is WeatherVariable.TEMPERATURE:
            display_value = format_temperature(resolution.value)
            label = temperature_label(resolution.value)

        colors.append(PolygonColor(
            polygon_id=polygon.id,
            name=polygon.name,
            color=resolution.color,
            value=resolution.value,
            display_value=display_value,
            label=label,
            weather_data=resolution.snapshot,
            local_time=local_time,
        ))

    return colors


@router.post("/polygons/refresh", response_model=List[Polygon])
async def refresh_all_polygons(
    store: DashboardStore = Depends(get_store),
    service: PolygonWeatherService = Depends(get_polygon_service)
) -> List[Polygon]:
    """Fetch current weather for every polygon, grouped by data source."""
    refreshed = []
    for data_source in store.state.data_sources:
        polygons = [p for p in store.state.polygons if p.data_source == data_source.id]
        if not polygons:
            continue
        for polygon in await service.fetch_multiple_polygon_weather(polygons, data_source):
            try:
                refreshed.append(store.put_polygon(polygon))
            except KeyError:
                logger.info(f"Polygon {polygon.id} was removed during refresh")

    return refreshed


@router.get("/polygons/{polygon_id}", response_model=Polygon)
async def get_polygon(polygon_id: str, store: DashboardStore = Depends(get_store)) -> Polygon:
    return lookup_polygon(store, polygon_id)


@router.patch("/polygons/{polygon_id}", response_model=Polygon)
async def update_polygon(
    polygon_id: str,
    body: PolygonUpdate,
    store: DashboardStore = Depends(get_store)
) -> Polygon:
    lookup_polygon(store, polygon_id)
    updates = body.model_dump(exclude_none=True)
    if "coordinates" in updates:
        updates["coordinates"] = close_ring(updates["coordinates"])
        # Cached weather belongs to the old centroid
        updates["weather_data"] = None
        updates["time_series_data"] = None

    try:
        return store.update_polygon(polygon_id, **updates)
    except InvalidGeometry as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/polygons/{polygon_id}", status_code=204)
async def delete_polygon(polygon_id: str, store: DashboardStore = Depends(get_store)) -> Response:
    lookup_polygon(store, polygon_id)
    store.remove_polygon(polygon_id)
    return Response(status_code=204)


@router.post("/polygons/{polygon_id}/refresh", response_model=Polygon)
async def refresh_polygon(
    polygon_id: str,
    force: bool = Query(False, description="Refresh even if the data is fresh"),
    store: DashboardStore = Depends(get_store),
    service: PolygonWeatherService = Depends(get_polygon_service)
) -> Polygon:
    """Refresh a polygon's current weather and time series if stale."""
    polygon = lookup_polygon(store, polygon_id)
    data_source = lookup_data_source(store, polygon.data_source)

    updated = await service.refresh_polygon_weather_if_stale(polygon, data_source, force=force)
    updated = await service.refresh_time_series_if_stale(updated)

    try:
        return store.put_polygon(updated)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Polygon '{polygon_id}' was removed during refresh")


@router.post("/polygons/{polygon_id}/select", response_model=MapState)
async def select_polygon(polygon_id: str, store: DashboardStore = Depends(get_store)) -> MapState:
    """Select a polygon and fit the map viewport to it."""
    polygon = lookup_polygon(store, polygon_id)
    store.set_selected_polygon(polygon.id)
    store.set_map_bounds(bounding_box(polygon.coordinates))
    store.set_map_center(centroid(polygon.coordinates))
    return store.state.map


@router.get("/map", response_model=MapState)
async def get_map(store: DashboardStore = Depends(get_store)) -> MapState:
    return store.state.map


# Data sources

@router.get("/data-sources", response_model=List[DataSource])
async def list_data_sources(store: DashboardStore = Depends(get_store)) -> List[DataSource]:
    return store.state.data_sources


@router.post("/data-sources", response_model=DataSource, status_code=201)
async def create_data_source(
    body: DataSourceCreate,
    store: DashboardStore = Depends(get_store)
) -> DataSource:
    try:
        return store.add_data_source(
            name=body.name,
            field=body.field,
            rules=body.rules,
            data_source_id=body.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.put("/data-sources/{data_source_id}", response_model=DataSource)
async def update_data_source(
    data_source_id: str,
    body: DataSourceUpdate,
    store: DashboardStore = Depends(get_store)
) -> DataSource:
    lookup_data_source(store, data_source_id)
    return store.update_data_source(data_source_id, **body.model_dump(exclude_none=True))


@router.delete("/data-sources/{data_source_id}", status_code=204)
async def delete_data_source(data_source_id: str, store: DashboardStore = Depends(get_store)) -> Response:
    lookup_data_source(store, data_source_id)
    store.remove_data_source(data_source_id)
    return Response(status_code=204)


# Timeline

@router.get("/timeline", response_model=TimelineState)
async def get_timeline(store: DashboardStore = Depends(get_store)) -> TimelineState:
    return store.state.timeline


def timeline_bounds(timeline: TimelineState) -> Tuple[datetime, datetime]:
    """Range bounds, defaulting to the fetched history and forecast window."""
    this_hour = utc_now().replace(minute=0, second=0, microsecond=0)
    start = timeline.start_time or this_hour - timedelta(days=HISTORY_DAYS)
    end = timeline.end_time or this_hour + timedelta(days=FORECAST_DAYS)
    return start, end


@router.get("/timeline/hours", response_model=TimelineHours)
async def get_timeline_hours(store: DashboardStore = Depends(get_store)) -> TimelineHours:
    """Hourly slider positions for the timeline range."""
    timeline = store.state.timeline
    start, end = timeline_bounds(timeline)

    selected_index = None
    if timeline.selected_time is not None and start <= timeline.selected_time <= end:
        selected_index = time_to_slider_value(timeline.selected_time, start)

    return TimelineHours(
        start_time=start,
        end_time=end,
        hours=timeline_hours(start, end),
        selected_index=selected_index,
    )


@router.put("/timeline", response_model=TimelineState)
async def update_timeline(body: TimelineUpdate, store: DashboardStore = Depends(get_store)) -> TimelineState:
    """Update the timeline and recolor polygons for a newly selected time."""
    if body.selected_time is not None and body.slider_value is not None:
        raise HTTPException(status_code=400, detail="Give either selected_time or slider_value, not both")

    if body.start_time is not None or body.end_time is not None:
        try:
            store.set_time_range(body.start_time, body.end_time)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    if body.mode is not None:
        store.set_timeline_mode(body.mode)

    selected = body.selected_time
    if body.slider_value is not None:
        start, _ = timeline_bounds(store.state.timeline)
        selected = slider_value_to_time(body.slider_value, start)

    if selected is not None:
        store.set_selected_time(selected)
        store.recolor_polygons(selected)

    return store.state.timeline
