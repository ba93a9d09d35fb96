from __future__ import annotations

from dataclasses import dataclass

from entities.types import Coordinates


@dataclass(frozen=True)
class BBox:
    """
    WGS84 bounding box in lon/lat degrees (the map's visible bounds).

    Convention used throughout this repo:
    - minLon, minLat, maxLon, maxLat
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def normalized(self) -> "BBox":
        min_lon = min(self.min_lon, self.max_lon)
        max_lon = max(self.min_lon, self.max_lon)
        min_lat = min(self.min_lat, self.max_lat)
        max_lat = max(self.min_lat, self.max_lat)
        return BBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)

    def contains(self, coords: Coordinates) -> bool:
        # Edges are inclusive.
        b = self.normalized()
        return (
            b.min_lon <= coords.lon <= b.max_lon
            and b.min_lat <= coords.lat <= b.max_lat
        )

    def center(self) -> Coordinates:
        b = self.normalized()
        return Coordinates(
            lat=(b.min_lat + b.max_lat) / 2.0, lon=(b.min_lon + b.max_lon) / 2.0
        )

    def as_dict(self) -> dict[str, float]:
        b = self.normalized()
        return {
            "minLon": b.min_lon,
            "minLat": b.min_lat,
            "maxLon": b.max_lon,
            "maxLat": b.max_lat,
        }
