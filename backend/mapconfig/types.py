from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from entities.types import ViewMode


class MapCenter(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


class MapDefaultView(BaseModel):
    # Tbilisi
    center: MapCenter = Field(default_factory=lambda: MapCenter(lat=41.7151, lon=44.8271))
    zoom: float = Field(default=11.0, ge=0.0, le=24.0)


SourceType = Literal["rows", "geojson"]


class CategorySource(BaseModel):
    type: SourceType
    path: str


class CategoryConfig(BaseModel):
    """
    Per-category settings.

    Titles, labels and marker styling live here rather than in code; `style` keys map onto
    `MarkerStyle` fields (color, selected_color, size, palette, ...).
    """

    title: str
    label: str | None = None
    source: CategorySource | None = None
    style: dict[str, Any] = Field(default_factory=dict)


class MapConfig(BaseModel):
    defaultView: MapDefaultView = Field(default_factory=MapDefaultView)
    # Zoom used when focusing an entity picked from the list.
    focusZoom: float = Field(default=15.0, ge=0.0, le=24.0)
    searchDebounceMs: int = Field(default=500, ge=0, le=10_000)
    maxMarkers: int = Field(default=2_500, ge=1, le=50_000)
    categories: dict[ViewMode, CategoryConfig] = Field(default_factory=dict)

    def title_for(self, mode: ViewMode) -> str:
        cfg = self.categories.get(mode)
        return cfg.title if cfg is not None else mode.value.title()
