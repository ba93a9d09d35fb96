from __future__ import annotations

import json
import logging
import time
from functools import lru_cache
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from engine.controller import MapViewController
from engine.modes import parse_view_mode, url_for
from entities.providers import EntityProvider, refresh_all
from entities.types import Coordinates, EntityId, ViewMode
from geo.aoi import BBox
from mapconfig.registry import build_providers, build_strategies, get_config
from markers.plot import build_map_plot
from markers.surface import InMemoryMap, InMemorySurface
from telemetry.singleton import get_recorder, record_reconcile, reset_recorder

app = FastAPI(title="Map view engine")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ApiBbox(BaseModel):
    minLon: float
    minLat: float
    maxLon: float
    maxLat: float


class ApiCenter(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


class ApiMapView(BaseModel):
    center: ApiCenter
    zoom: float = Field(ge=0.0, le=24.0)


class ApiViewport(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class ApiMapContext(BaseModel):
    bbox: ApiBbox | None = None
    view: ApiMapView | None = None
    viewport: ApiViewport | None = None


class ApiPlotRequest(BaseModel):
    # Loosely typed on purpose: filter values are coerced, never rejected.
    filters: dict[str, Any] = Field(default_factory=dict)
    search: str | None = None
    map: ApiMapContext | None = None
    selectedId: str | int | None = None
    focusSelected: bool = False


@lru_cache(maxsize=1)
def _providers() -> dict[ViewMode, EntityProvider]:
    return build_providers(get_config())


_loaded: set[ViewMode] = set()


async def _ensure_loaded() -> dict[ViewMode, EntityProvider]:
    # Providers load once per process; a concurrent first request at worst loads twice.
    providers = _providers()
    missing = {m: p for m, p in providers.items() if m not in _loaded}
    if missing:
        await refresh_all(missing)
        _loaded.update(missing.keys())
    return providers


def reset_state() -> None:
    """
    Drop cached providers so the next request reloads data (tests, config changes).
    """
    _providers.cache_clear()
    _loaded.clear()


def _resolve_entity_id(
    providers: dict[ViewMode, EntityProvider], mode: ViewMode, raw: str | int | None
) -> EntityId | None:
    # JSON round-trips may turn 42 into "42"; match on the string form.
    if raw is None:
        return None
    for e in providers[mode].state().items:
        if str(e.id) == str(raw):
            return e.id
    return None


def _render(
    mode: ViewMode,
    body: ApiPlotRequest,
    providers: dict[ViewMode, EntityProvider],
) -> dict[str, Any]:
    cfg = get_config()
    t0 = time.perf_counter()

    ctx = body.map or ApiMapContext()
    viewport = (
        {"width": int(ctx.viewport.width), "height": int(ctx.viewport.height)}
        if ctx.viewport is not None
        else None
    )
    controller = MapViewController(
        providers, build_strategies(cfg), config=cfg, on_reconcile=record_reconcile
    )
    controller.set_view_mode(mode)
    surface = InMemorySurface(viewport=viewport)
    controller.init(
        surface,
        center=Coordinates(lat=ctx.view.center.lat, lon=ctx.view.center.lon)
        if ctx.view is not None
        else None,
        zoom=ctx.view.zoom if ctx.view is not None else None,
    )
    if ctx.bbox is not None:
        controller.on_bounds_changed(
            BBox(
                min_lon=ctx.bbox.minLon,
                min_lat=ctx.bbox.minLat,
                max_lon=ctx.bbox.maxLon,
                max_lat=ctx.bbox.maxLat,
            )
        )
    if body.filters:
        controller.set_filters(body.filters)
    if body.search is not None:
        controller.apply_search(body.search)

    selected_id = _resolve_entity_id(providers, mode, body.selectedId)
    if selected_id is not None:
        if body.focusSelected:
            controller.select_from_list(selected_id)
        else:
            controller.on_marker_click(selected_id)
    t_engine_ms = (time.perf_counter() - t0) * 1000.0

    sheet = controller.mobile_sheet()
    side = controller.sidebar()
    bounds = controller.viewport.bounds
    handle: InMemoryMap = surface.maps[-1]

    t1 = time.perf_counter()
    plot = build_map_plot(
        controller.reconciler.records,
        layer_title=sheet.title,
        view_center=handle.center,
        view_zoom=handle.zoom,
        aoi=bounds,
        meta={
            "mode": mode.value,
            "title": sheet.title,
            "label": sheet.label,
            "url": url_for(mode),
            "filters": controller.filter_state.as_dict(),
            "activeFilterCount": sheet.active_filter_count,
            "sidebar": [
                {"id": e.id, "name": e.name, "hasCoordinates": e.has_coordinates}
                for e in side.items
            ],
            "counts": {
                "total": side.total_count,
                "inView": side.in_view_count,
                "onMap": side.on_map_count,
            },
            "facets": sheet.facets,
            "isLoading": side.is_loading,
        },
    )
    t_plot_ms = (time.perf_counter() - t1) * 1000.0
    last = controller.last_stats
    stats: dict[str, Any] = {
        "markers": side.on_map_count,
        "capped": last.capped if last is not None else 0,
        "reconcile": last.as_dict() if last is not None else None,
    }
    plot["layout"]["meta"]["stats"] = stats
    plot_json = json.dumps(plot, ensure_ascii=False, default=str)
    stats["payloadBytes"] = len(plot_json)
    stats["timingsMs"] = {
        "engine": round(t_engine_ms, 2),
        "plot": round(t_plot_ms, 2),
        "total": round((time.perf_counter() - t0) * 1000.0, 2),
    }
    controller.teardown()
    return plot


@app.get("/modes")
async def list_modes():
    cfg = get_config()
    providers = await _ensure_loaded()
    strategies = build_strategies(cfg)
    return [
        {
            "mode": mode.value,
            "title": cfg.title_for(mode),
            "label": strategies[mode].label,
            "url": url_for(mode),
            "count": len(providers[mode].state().items),
            "isLoading": providers[mode].state().is_loading,
            "error": providers[mode].state().error,
        }
        for mode in ViewMode
    ]


@app.get("/map")
def map_root():
    return RedirectResponse(url=url_for(ViewMode.listings), status_code=307)


@app.get("/map/{segment}")
async def map_view(segment: str):
    mode, redirected = parse_view_mode(segment)
    if redirected:
        return RedirectResponse(url=url_for(mode), status_code=307)
    providers = await _ensure_loaded()
    return _render(mode, ApiPlotRequest(), providers)


@app.post("/map/{segment}/plot")
async def map_plot(segment: str, body: ApiPlotRequest):
    mode, redirected = parse_view_mode(segment)
    if redirected:
        # 307 keeps the method and body.
        return RedirectResponse(url=f"{url_for(mode)}/plot", status_code=307)
    providers = await _ensure_loaded()
    return _render(mode, body, providers)


@app.get("/telemetry/reconciles")
def telemetry_reconciles(view_mode: str | None = None, cause: str | None = None):
    recorder = get_recorder()
    if recorder is None:
        return {"enabled": False, "rows": []}
    return {"enabled": True, "rows": recorder.churn(view_mode=view_mode, cause=cause)}


@app.get("/telemetry/aborts")
def telemetry_aborts(limit: int = 20):
    recorder = get_recorder()
    if recorder is None:
        return {"enabled": False, "rows": []}
    return {"enabled": True, "rows": recorder.recent_aborts(limit=limit)}


@app.post("/telemetry/reset")
def telemetry_reset():
    reset_recorder()
    return {"ok": True}


if __name__ == "__main__":
    import os

    import uvicorn

    logging.basicConfig(level=os.getenv("MAPVIEW_LOG_LEVEL", "INFO").upper())
    uvicorn.run(
        "main:app",
        host=os.getenv("MAPVIEW_HOST", "127.0.0.1"),
        port=int(os.getenv("MAPVIEW_PORT", "8000")),
        reload=True,
    )
