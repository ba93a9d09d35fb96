from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeAlias, Union


EntityId: TypeAlias = Union[str, int]


class ViewMode(str, Enum):
    listings = "listings"
    laundries = "laundries"
    drives = "drives"
    chargers = "chargers"
    stations = "stations"


DEFAULT_VIEW_MODE = ViewMode.listings


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float


@dataclass(frozen=True)
class Entity:
    """
    A single point of interest shown on the map (service listing, laundry, drive venue,
    EV charger or fuel station).

    Category-specific attributes (prices, brand, charger type, ...) live in `props`;
    this type intentionally stays generic so one pipeline can serve all categories.
    """

    id: EntityId
    category: ViewMode
    name: str
    coordinates: Coordinates | None
    props: dict[str, Any] = field(default_factory=dict)
    photos: tuple[str, ...] | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None

    def prop(self, key: str, default: Any = None) -> Any:
        value = (self.props or {}).get(key)
        return default if value is None else value


def parse_coordinates(lat: Any, lon: Any) -> Coordinates | None:
    """
    Build coordinates from raw row values.

    Missing or non-numeric values yield None (the entity stays listable but never gets a marker).
    """
    if lat is None or lon is None:
        return None
    try:
        lat_f = float(lat)
        lon_f = float(lon)
    except (TypeError, ValueError):
        return None
    if lat_f != lat_f or lon_f != lon_f:  # NaN
        return None
    return Coordinates(lat=lat_f, lon=lon_f)
