"""
Plotly/Mapbox rendering plan for a marker layer.

Turns the marker records of one reconcile into a `{"data": [...], "layout": {...}}`
payload the frontend can hand straight to Plotly.
"""
from __future__ import annotations

from typing import Any

from entities.types import Coordinates
from geo.aoi import BBox
from markers.types import MarkerRecord


def trace_aoi_bbox(aoi: BBox) -> dict[str, Any]:
    b = aoi.normalized()
    return {
        "type": "scattermapbox",
        "name": "Visible bounds",
        "lon": [b.min_lon, b.max_lon, b.max_lon, b.min_lon, b.min_lon],
        "lat": [b.min_lat, b.min_lat, b.max_lat, b.max_lat, b.min_lat],
        "mode": "lines",
        "line": {"color": "rgba(55, 71, 79, 0.7)", "width": 1},
        "hoverinfo": "skip",
        "showlegend": False,
    }


def trace_markers(name: str, records: list[MarkerRecord]) -> dict[str, Any]:
    """
    One trace for markers sharing a visual; Plotly styles per trace, not per point.
    """
    visual = records[0].visual
    return {
        "type": "scattermapbox",
        "name": name,
        "lon": [r.coordinates.lon for r in records],
        "lat": [r.coordinates.lat for r in records],
        "mode": "markers",
        "text": [r.popup.title for r in records],
        "customdata": [r.entity_id for r in records],
        "marker": {"size": visual.size, "color": visual.color},
        "hovertemplate": "%{text}<extra></extra>",
    }


def trace_selected(record: MarkerRecord) -> dict[str, Any]:
    return {
        "type": "scattermapbox",
        "name": "Selected",
        "lon": [record.coordinates.lon],
        "lat": [record.coordinates.lat],
        "mode": "markers+text",
        "text": [record.popup.title],
        "textposition": "top center",
        "customdata": [record.entity_id],
        "marker": {"size": record.visual.size, "color": record.visual.color},
        "hovertemplate": "%{text}<extra></extra>",
    }


def build_map_plot(
    records: list[MarkerRecord],
    *,
    layer_title: str,
    view_center: Coordinates,
    view_zoom: float,
    aoi: BBox | None = None,
    meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    traces: list[dict[str, Any]] = []
    if aoi is not None:
        traces.append(trace_aoi_bbox(aoi))

    # Group unselected markers by visual, keeping first-seen order for a stable legend.
    groups: dict[tuple[str, int], list[MarkerRecord]] = {}
    selected: MarkerRecord | None = None
    for r in records:
        if r.is_selected:
            selected = r
            continue
        groups.setdefault((r.visual.color, r.visual.size), []).append(r)

    single = len(groups) == 1
    for (color, _), group in groups.items():
        traces.append(trace_markers(layer_title if single else f"{layer_title} {color}", group))
    # Selected last so it draws on top.
    if selected is not None:
        traces.append(trace_selected(selected))

    out_meta: dict[str, Any] = dict(meta or {})
    out_meta["markers"] = [
        {
            "id": r.entity_id,
            "lat": r.coordinates.lat,
            "lon": r.coordinates.lon,
            "isSelected": r.is_selected,
            "visual": r.visual.as_dict(),
            "popup": r.popup.as_dict(),
        }
        for r in records
    ]
    out_meta["selectedId"] = selected.entity_id if selected is not None else None

    return {
        "data": traces,
        "layout": {
            "mapbox": {
                "center": {"lat": view_center.lat, "lon": view_center.lon},
                "zoom": float(view_zoom),
                "style": "carto-positron",
            },
            "showlegend": len(groups) > 1,
            "legend": {
                "x": 0.99,
                "y": 0.99,
                "xanchor": "right",
                "yanchor": "top",
                "bgcolor": "rgba(255, 255, 255, 0.75)",
                "bordercolor": "rgba(120, 120, 120, 0.35)",
                "borderwidth": 1,
                "font": {"size": 11},
            },
            "meta": out_meta,
        },
    }
