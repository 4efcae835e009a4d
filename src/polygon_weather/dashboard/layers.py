"""Side table linking map layers to polygons."""

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class LayerRegistry:
    """Two-way mapping between map layer identifiers and polygon ids.

    A layer maps to exactly one polygon and a polygon to at most one layer;
    binding either side again replaces the previous association.
    """

    def __init__(self):
        self._polygon_by_layer: Dict[str, str] = {}
        self._layer_by_polygon: Dict[str, str] = {}

    def bind(self, layer_id: str, polygon_id: str) -> None:
        self.unbind_layer(layer_id)
        self.unbind_polygon(polygon_id)
        self._polygon_by_layer[layer_id] = polygon_id
        self._layer_by_polygon[polygon_id] = layer_id
        logger.debug(f"Bound layer {layer_id} to polygon {polygon_id}")

    def unbind_layer(self, layer_id: str) -> Optional[str]:
        """Forget a layer. Returns the polygon it was bound to, if any."""
        polygon_id = self._polygon_by_layer.pop(layer_id, None)
        if polygon_id is not None:
            self._layer_by_polygon.pop(polygon_id, None)
        return polygon_id

    def unbind_polygon(self, polygon_id: str) -> Optional[str]:
        """Forget a polygon. Returns the layer it was bound to, if any."""
        layer_id = self._layer_by_polygon.pop(polygon_id, None)
        if layer_id is not None:
            self._polygon_by_layer.pop(layer_id, None)
        return layer_id

    def polygon_for_layer(self, layer_id: str) -> Optional[str]:
        return self._polygon_by_layer.get(layer_id)

    def layer_for_polygon(self, polygon_id: str) -> Optional[str]:
        return self._layer_by_polygon.get(polygon_id)

    def clear(self) -> None:
        self._polygon_by_layer.clear()
        self._layer_by_polygon.clear()

    def __len__(self) -> int:
        return len(self._polygon_by_layer)
