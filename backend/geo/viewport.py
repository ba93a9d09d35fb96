from __future__ import annotations

from entities.types import Entity
from geo.aoi import BBox
from geo.index import build_point_index


def restrict_to_viewport(entities: list[Entity], bounds: BBox | None) -> list[Entity]:
    """
    Keep entities inside the visible bounds, in input order.

    - bounds=None (map not initialized yet) means no restriction.
    - Entities without coordinates always pass; they are excluded from markers elsewhere.
    """
    if bounds is None:
        return list(entities)
    inside = build_point_index(entities).positions_in_bbox(bounds)
    return [
        e for pos, e in enumerate(entities) if e.coordinates is None or pos in inside
    ]


class ViewportTracker:
    """
    Holds the current visible bounds of the map.

    Only pan/zoom events write here; everything else reads. Updating the bounds never
    causes a refetch; callers only recompute what is displayed.
    """

    def __init__(self) -> None:
        self._bounds: BBox | None = None

    @property
    def bounds(self) -> BBox | None:
        return self._bounds

    def update(self, bounds: BBox | None) -> None:
        self._bounds = bounds.normalized() if bounds is not None else None

    def reset(self) -> None:
        self._bounds = None
