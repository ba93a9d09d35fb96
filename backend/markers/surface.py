"""
Rendering-surface capability.

The engine talks to the map library only through these interfaces. `InMemorySurface` is a
recording implementation: the HTTP surface uses it to compute rendering plans server-side,
and tests use it to observe marker create/destroy/popup behaviour.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from entities.types import Coordinates
from geo.aoi import BBox
from markers.types import MarkerVisual, PopupContent

Handler = Callable[[], None]

MAP_EVENTS = ("moveend", "zoomend")


class SurfaceClosedError(RuntimeError):
    """Raised when a torn-down map is used."""


class MarkerHandle(Protocol):
    def bind_popup(self, content: PopupContent) -> None: ...

    def on(self, event: str, handler: Handler) -> None: ...

    def open_popup(self) -> None: ...


class MapHandle(Protocol):
    def get_bounds(self) -> BBox: ...

    def on(self, event: str, handler: Handler) -> None: ...

    def set_view(self, coords: Coordinates, zoom: float) -> None: ...

    def add_marker(self, coords: Coordinates, visual: MarkerVisual) -> MarkerHandle: ...

    def remove_marker(self, handle: MarkerHandle) -> None: ...

    def is_alive(self) -> bool: ...

    def remove(self) -> None: ...


class MapSurface(Protocol):
    def create_map(self, center: Coordinates, zoom: float) -> MapHandle: ...


@dataclass(eq=False)
class InMemoryMarker:
    map: "InMemoryMap"
    coordinates: Coordinates
    visual: MarkerVisual
    popup: PopupContent | None = None
    handlers: dict[str, list[Handler]] = field(default_factory=dict, repr=False)

    def bind_popup(self, content: PopupContent) -> None:
        self.popup = content

    def on(self, event: str, handler: Handler) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def open_popup(self) -> None:
        if self.popup is None:
            return
        self.map.open_popup_for(self)

    @property
    def popup_open(self) -> bool:
        return self.map.open_marker is self

    def fire(self, event: str) -> None:
        for handler in list(self.handlers.get(event, [])):
            handler()


@dataclass(eq=False)
class InMemoryMap:
    center: Coordinates
    zoom: float
    viewport: dict[str, int] = field(
        default_factory=lambda: {"width": 900, "height": 600}
    )
    markers: list[InMemoryMarker] = field(default_factory=list)
    open_marker: InMemoryMarker | None = None
    alive: bool = True
    handlers: dict[str, list[Handler]] = field(default_factory=dict, repr=False)
    _bounds: BBox | None = field(default=None, repr=False)

    def _ensure_alive(self) -> None:
        if not self.alive:
            raise SurfaceClosedError("map has been removed")

    def get_bounds(self) -> BBox:
        self._ensure_alive()
        if self._bounds is None:
            self._bounds = bounds_for_view(self.center, self.zoom, viewport=self.viewport)
        return self._bounds

    def on(self, event: str, handler: Handler) -> None:
        self._ensure_alive()
        self.handlers.setdefault(event, []).append(handler)

    def set_view(self, coords: Coordinates, zoom: float) -> None:
        self._ensure_alive()
        zoom_changed = float(zoom) != float(self.zoom)
        self.center = coords
        self.zoom = float(zoom)
        self._bounds = None
        self.fire("moveend")
        if zoom_changed:
            self.fire("zoomend")

    def fit_bounds(self, bounds: BBox) -> None:
        """
        Jump to exact bounds (stands in for a user pan/zoom gesture).
        """
        self._ensure_alive()
        self._bounds = bounds.normalized()
        self.center = self._bounds.center()
        self.fire("moveend")

    def add_marker(self, coords: Coordinates, visual: MarkerVisual) -> InMemoryMarker:
        self._ensure_alive()
        marker = InMemoryMarker(map=self, coordinates=coords, visual=visual)
        self.markers.append(marker)
        return marker

    def remove_marker(self, handle: InMemoryMarker) -> None:
        if handle in self.markers:
            self.markers.remove(handle)
        if self.open_marker is handle:
            self.open_marker = None

    def open_popup_for(self, marker: InMemoryMarker) -> None:
        # One popup at a time, like the browser map library.
        if marker in self.markers:
            self.open_marker = marker

    def is_alive(self) -> bool:
        return self.alive

    def remove(self) -> None:
        self.alive = False
        self.markers.clear()
        self.open_marker = None
        self.handlers.clear()

    def fire(self, event: str) -> None:
        for handler in list(self.handlers.get(event, [])):
            handler()


class InMemorySurface:
    def __init__(self, *, viewport: dict[str, int] | None = None) -> None:
        self.viewport = viewport
        self.maps: list[InMemoryMap] = []

    def create_map(self, center: Coordinates, zoom: float) -> InMemoryMap:
        m = InMemoryMap(center=center, zoom=float(zoom))
        if self.viewport:
            m.viewport = dict(self.viewport)
        self.maps.append(m)
        return m


def bounds_for_view(
    center: Coordinates, zoom: float, *, viewport: dict[str, Any] | None = None
) -> BBox:
    """
    Approximate WebMercator bounds of a viewport centered at `center`.
    """
    width = int((viewport or {}).get("width") or 900)
    height = int((viewport or {}).get("height") or 600)
    # 256px tiles; degrees of longitude per pixel at this zoom.
    deg_per_px = 360.0 / (256.0 * (2.0 ** float(zoom)))
    half_lon = width * deg_per_px / 2.0
    # Latitude shrinks with cos(lat) in WebMercator.
    half_lat = height * deg_per_px * math.cos(math.radians(center.lat)) / 2.0
    return BBox(
        min_lon=center.lon - half_lon,
        min_lat=max(-85.0, center.lat - half_lat),
        max_lon=center.lon + half_lon,
        max_lat=min(85.0, center.lat + half_lat),
    )
