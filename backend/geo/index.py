from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shapely.geometry import Point
from shapely.geometry import box as shapely_box
from shapely.strtree import STRtree

from entities.types import Entity
from geo.aoi import BBox


@dataclass
class PointIndex:
    """
    STRtree index over the entities of one list that have coordinates.

    Positions returned by queries refer to the original input list, so callers can keep
    the input order when slicing.
    """

    entities: list[Entity]

    _tree: STRtree | None = field(default=None, repr=False)
    _positions: list[int] = field(default_factory=list, repr=False)

    def positions_in_bbox(self, aoi: BBox) -> set[int]:
        if self._tree is None or not self._positions:
            return set()
        b = aoi.normalized()
        query = shapely_box(b.min_lon, b.min_lat, b.max_lon, b.max_lat)
        # `intersects` keeps points lying exactly on the bbox edge.
        hits = _to_int_list(self._tree.query(query, predicate="intersects"))
        return {self._positions[i] for i in hits if 0 <= i < len(self._positions)}

    def __len__(self) -> int:
        return len(self._positions)


def build_point_index(entities: list[Entity]) -> PointIndex:
    idx = PointIndex(entities=entities)
    geoms: list[Point] = []
    for pos, ent in enumerate(entities):
        c = ent.coordinates
        if c is None:
            continue
        geoms.append(Point(float(c.lon), float(c.lat)))
        idx._positions.append(pos)
    idx._tree = STRtree(geoms) if geoms else None
    return idx


def _to_int_list(idxs: Any) -> list[int]:
    # STRtree.query returns a numpy array of input positions.
    if idxs is None:
        return []
    return [int(i) for i in idxs]
