from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from entities.types import Entity, ViewMode, parse_coordinates

FUEL_BRANDS: tuple[str, ...] = ("SOCAR", "WISSOL", "ROMPETROL", "GULF", "PORTAL")
DEFAULT_FUEL_BRAND = "SOCAR"

_BRAND_ALIASES: dict[str, str] = {
    "სოკარი": "SOCAR",
    "ვისოლი": "WISSOL",
    "რომპეტროლი": "ROMPETROL",
    "გალფი": "GULF",
    "პორტალი": "PORTAL",
}

_FUEL_TYPES: tuple[str, ...] = ("diesel", "octane_95", "octane_98", "lpg", "cng")
_STATION_SERVICES: tuple[str, ...] = ("shop", "car_wash", "toilets", "atm")

_LISTING_PROPS: tuple[str, ...] = (
    "description",
    "address",
    "city",
    "district",
    "category_id",
    "custom_category",
    "car_brands",
    "on_site_service",
    "rating",
    "review_count",
    "price_from",
    "price_to",
)
_LAUNDRY_PROPS: tuple[str, ...] = (
    "description",
    "address",
    "water_price",
    "foam_price",
    "wax_price",
    "box_count",
    "contact_number",
)
_DRIVE_PROPS: tuple[str, ...] = (
    "description",
    "address",
    "contact_number",
    "venue_type",
)


def normalize_fuel_brand(brand: Any) -> str:
    raw = str(brand or "").strip()
    if not raw:
        return DEFAULT_FUEL_BRAND
    alias = _BRAND_ALIASES.get(raw)
    if alias is not None:
        return alias
    upper = raw.upper()
    if upper in FUEL_BRANDS:
        return upper
    return DEFAULT_FUEL_BRAND


def _photos(raw: Any) -> tuple[str, ...] | None:
    if not raw:
        return None
    if isinstance(raw, str):
        return (raw,)
    return tuple(str(p) for p in raw if p)


def _row_entity(
    row: dict[str, Any], *, category: ViewMode, keys: tuple[str, ...]
) -> Entity | None:
    rid = row.get("id")
    if rid is None:
        return None
    props = {k: row.get(k) for k in keys if k in row}
    return Entity(
        id=rid,
        category=category,
        name=str(row.get("name") or ""),
        coordinates=parse_coordinates(row.get("latitude"), row.get("longitude")),
        props=props,
        photos=_photos(row.get("photos")),
    )


def listings_from_rows(rows: list[dict[str, Any]]) -> list[Entity]:
    """
    Input: `mechanic_services` rows, optionally with a joined `mechanic` profile.
    """
    out: list[Entity] = []
    for row in rows or []:
        ent = _row_entity(row, category=ViewMode.listings, keys=_LISTING_PROPS)
        if ent is None:
            continue
        mechanic = row.get("mechanic") or {}
        ent.props["mechanic_first_name"] = mechanic.get("first_name")
        ent.props["mechanic_last_name"] = mechanic.get("last_name")
        out.append(ent)
    return out


def laundries_from_rows(rows: list[dict[str, Any]]) -> list[Entity]:
    out: list[Entity] = []
    for row in rows or []:
        ent = _row_entity(row, category=ViewMode.laundries, keys=_LAUNDRY_PROPS)
        if ent is not None:
            out.append(ent)
    return out


def drives_from_rows(rows: list[dict[str, Any]]) -> list[Entity]:
    out: list[Entity] = []
    for row in rows or []:
        ent = _row_entity(row, category=ViewMode.drives, keys=_DRIVE_PROPS)
        if ent is not None:
            out.append(ent)
    return out


def _point_features(data: dict[str, Any]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for feature in (data or {}).get("features") or []:
        geom = (feature or {}).get("geometry") or {}
        if geom.get("type") != "Point" or not geom.get("coordinates"):
            continue
        out.append(feature)
    return out


def chargers_from_geojson(data: dict[str, Any]) -> list[Entity]:
    """
    Input: GeoJSON FeatureCollection of charger points.

    Ids are positional (`charger-<n>`) over the kept Point features.
    """
    out: list[Entity] = []
    for i, feature in enumerate(_point_features(data)):
        props = feature.get("properties") or {}
        lon, lat = feature["geometry"]["coordinates"][:2]
        out.append(
            Entity(
                id=f"charger-{i}",
                category=ViewMode.chargers,
                name=props.get("name_ka") or "უცნობი დამტენი",
                coordinates=parse_coordinates(lat, lon),
                props={
                    "name_en": props.get("name_en") or "Unknown Charger",
                    "type": props.get("type") or "charger",
                    "source": props.get("source") or "unknown",
                    "status": props.get("status"),
                },
            )
        )
    return out


def fuel_stations_from_geojson(data: dict[str, Any]) -> list[Entity]:
    out: list[Entity] = []
    for i, feature in enumerate(_point_features(data)):
        props = feature.get("properties") or {}
        lon, lat = feature["geometry"]["coordinates"][:2]
        fuel_types = props.get("fuel_types") or {}
        services = props.get("services") or {}
        out.append(
            Entity(
                id=f"station-{props.get('id') or i}",
                category=ViewMode.stations,
                name=props.get("name") or "Unknown Station",
                coordinates=parse_coordinates(lat, lon),
                props={
                    "brand": normalize_fuel_brand(props.get("brand")),
                    "address": props.get("address"),
                    "opening_hours": props.get("opening_hours"),
                    "phone": props.get("phone"),
                    "website": props.get("website"),
                    "fuel_types": {k: bool(fuel_types.get(k)) for k in _FUEL_TYPES},
                    "services": {k: bool(services.get(k)) for k in _STATION_SERVICES},
                },
            )
        )
    return out


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def load_entities(mode: ViewMode, source_type: str, path: Path) -> list[Entity]:
    """
    Load one category's entities from a file on disk.
    """
    data = _read_json(path)
    if source_type == "rows":
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON array of rows in {path}")
        if mode == ViewMode.listings:
            return listings_from_rows(data)
        if mode == ViewMode.laundries:
            return laundries_from_rows(data)
        if mode == ViewMode.drives:
            return drives_from_rows(data)
    elif source_type == "geojson":
        if not isinstance(data, dict):
            raise ValueError(f"Expected a GeoJSON FeatureCollection in {path}")
        if mode == ViewMode.chargers:
            return chargers_from_geojson(data)
        if mode == ViewMode.stations:
            return fuel_stations_from_geojson(data)
    raise ValueError(f"Unsupported source type '{source_type}' for {mode.value}")
