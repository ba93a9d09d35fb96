"""
Per-category rendering strategies.

Each category contributes exactly three things to the generic reconciler: how a marker looks,
what its popup shows, and which fields free-text search covers. Everything else (create,
destroy, click wiring) is shared.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping

from entities.types import Entity, ViewMode
from filtering.pipeline import FilterRules, is_fast_charger
from markers.types import MarkerVisual, PopupAction, PopupContent


@dataclass(frozen=True)
class MarkerStyle:
    color: str
    selected_color: str
    glyph: str
    size: int = 28
    selected_size: int = 32
    icon_size: int = 12
    selected_icon_size: int = 14
    border_width: int = 3
    selected_border_width: int = 4
    # Optional per-value colors keyed by `color_by` prop (charger type, fuel brand).
    color_by: str | None = None
    palette: dict[str, str] = field(default_factory=dict)

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> "MarkerStyle":
        if not overrides:
            return self
        known = {k: v for k, v in overrides.items() if k in self.__dataclass_fields__}
        if "palette" in known:
            known["palette"] = {**self.palette, **dict(known["palette"] or {})}
        return replace(self, **known)


@dataclass(frozen=True)
class CategoryStrategy:
    mode: ViewMode
    label: str
    rules: FilterRules
    style: MarkerStyle
    popup_builder: Callable[[Entity], PopupContent]
    glyph_for: Callable[[Entity, MarkerStyle], str] | None = None

    def build_visual(self, entity: Entity, is_selected: bool) -> MarkerVisual:
        s = self.style
        color = s.palette.get(str(entity.prop(s.color_by) or "")) if s.color_by else None
        if is_selected:
            # Palette-colored markers keep their color and only grow when selected.
            color = color or s.selected_color
        else:
            color = color or s.color
        glyph = self.glyph_for(entity, s) if self.glyph_for else s.glyph
        return MarkerVisual(
            size=s.selected_size if is_selected else s.size,
            color=color,
            icon_glyph=glyph,
            icon_size=s.selected_icon_size if is_selected else s.icon_size,
            border_width=s.selected_border_width if is_selected else s.border_width,
        )

    def build_popup(self, entity: Entity) -> PopupContent:
        return self.popup_builder(entity)


CHARGER_TYPE_LABELS: dict[str, str] = {
    "hotel": "სასტუმრო",
    "shopping": "სავაჭრო ცენტრი",
    "gas_station": "ბენზინგასამართი",
    "business": "ბიზნეს ცენტრი",
    "clinic": "კლინიკა",
    "hospital": "საავადმყოფო",
    "recreation": "დასასვენებელი",
    "university": "უნივერსიტეტი",
    "charger": "დამტენი",
    "fast_charger": "სწრაფი დამტენი",
}

CHARGER_TYPE_COLORS: dict[str, str] = {
    "fast_charger": "#16A34A",
    "charger": "#EAB308",
    "gas_station": "#EA580C",
    "hotel": "#8B5CF6",
    "shopping": "#EC4899",
    "business": "#3B82F6",
    "clinic": "#EF4444",
    "hospital": "#EF4444",
    "recreation": "#14B8A6",
    "university": "#6366F1",
}

FUEL_BRAND_COLORS: dict[str, str] = {
    "SOCAR": "#00A651",
    "WISSOL": "#E31E24",
    "ROMPETROL": "#FFCC00",
    "GULF": "#FF6B00",
    "PORTAL": "#2E3192",
}

FUEL_BRAND_LOGOS: dict[str, str] = {
    "SOCAR": "/fuel-company-logos/socar-logo.svg",
    "WISSOL": "/fuel-company-logos/wissol-logo.png",
    "ROMPETROL": "/fuel-company-logos/rompetrol-logo.png",
    "GULF": "/fuel-company-logos/gulf-logo.png",
    "PORTAL": "/fuel-company-logos/portal-logo.svg",
}

FUEL_TYPE_LABELS: dict[str, str] = {
    "diesel": "დიზელი",
    "octane_95": "95",
    "octane_98": "98",
    "lpg": "LPG",
    "cng": "CNG",
}


def charger_type_label(charger_type: str) -> str:
    return CHARGER_TYPE_LABELS.get(charger_type, charger_type)


def _first_photo(entity: Entity) -> str | None:
    return entity.photos[0] if entity.photos else None


def _route_action(entity: Entity) -> PopupAction | None:
    c = entity.coordinates
    if c is None:
        return None
    return PopupAction(
        kind="route",
        label="მარშრუტი",
        href=f"https://www.google.com/maps/dir/?api=1&destination={c.lat},{c.lon}",
    )


def _call_action(entity: Entity) -> PopupAction | None:
    phone = entity.prop("contact_number")
    if not phone:
        return None
    return PopupAction(kind="call", label="📞 დარეკვა", href=f"tel:{phone}")


def listing_address(entity: Entity) -> str:
    address = entity.prop("address")
    if address:
        return str(address)
    city = entity.prop("city")
    district = entity.prop("district")
    if city and district:
        return f"{city}, {district}"
    return str(city or "მისამართი მითითებული არ არის")


def listing_popup(entity: Entity) -> PopupContent:
    return PopupContent(
        title=entity.name,
        photo=_first_photo(entity),
        placeholder="🔧 სერვისის ფოტო",
        description=entity.prop("description")
        or "მოიცავს მანქანის შეკეთებას და მომსახურებას პროფესიონალური მექანიკოსების მიერ.",
        fields=(("მისამართი", listing_address(entity)),),
        action=PopupAction(
            kind="details", label="დეტალების ნახვა", href=f"/service/{entity.id}"
        ),
    )


def laundry_popup(entity: Entity) -> PopupContent:
    badges: list[str] = []
    for key, label in (("water_price", "წყალი"), ("foam_price", "ქაფი"), ("wax_price", "ცვილი")):
        price = entity.prop(key)
        if price:
            badges.append(f"{label}: {price}₾")
    box_count = entity.prop("box_count")
    return PopupContent(
        title=entity.name,
        photo=_first_photo(entity),
        placeholder="🧼",
        description=entity.prop("description") or "პროფესიონალური ავტოსამრეცხაო სერვისი",
        fields=(("ბოქსების რაოდენობა", str(box_count)),) if box_count else (),
        badges=tuple(badges),
        action=_call_action(entity),
    )


def drive_popup(entity: Entity) -> PopupContent:
    fields: list[tuple[str, str]] = []
    if entity.prop("address"):
        fields.append(("მისამართი", str(entity.prop("address"))))
    if entity.prop("venue_type"):
        fields.append(("ტიპი", str(entity.prop("venue_type"))))
    if entity.prop("contact_number"):
        fields.append(("ტელეფონი", str(entity.prop("contact_number"))))
    return PopupContent(
        title=entity.name,
        photo=_first_photo(entity),
        placeholder="🚗",
        description=entity.prop("description"),
        fields=tuple(fields),
        action=_call_action(entity),
    )


def charger_popup(entity: Entity) -> PopupContent:
    fast = is_fast_charger(entity)
    return PopupContent(
        title=entity.name,
        photo=None,
        placeholder="⚡",
        description=entity.prop("name_en"),
        fields=(
            ("ტიპი", charger_type_label(str(entity.prop("type", "charger")))),
            ("წყარო", str(entity.prop("source", "unknown"))),
        ),
        badges=("⚡ სწრაფი დამტენი",) if fast else (),
        action=_route_action(entity),
    )


def _station_address(entity: Entity) -> str | None:
    address = entity.prop("address")
    if not isinstance(address, dict):
        return None
    street = " ".join(
        str(p) for p in (address.get("street"), address.get("housenumber")) if p
    )
    parts = [p for p in (street, address.get("city")) if p]
    return ", ".join(parts) or None


def station_popup(entity: Entity) -> PopupContent:
    brand = str(entity.prop("brand", ""))
    fuel_types = entity.prop("fuel_types", {}) or {}
    available = [FUEL_TYPE_LABELS.get(k, k) for k, ok in fuel_types.items() if ok]
    fields: list[tuple[str, str]] = []
    if available:
        fields.append(("საწვავი", ", ".join(available)))
    address = _station_address(entity)
    if address:
        fields.append(("მისამართი", address))
    if entity.prop("opening_hours"):
        fields.append(("სამუშაო საათები", str(entity.prop("opening_hours"))))
    return PopupContent(
        title=entity.name,
        photo=FUEL_BRAND_LOGOS.get(brand),
        placeholder="⛽",
        description=brand or None,
        fields=tuple(fields),
        action=_route_action(entity),
    )


def _charger_glyph(entity: Entity, style: MarkerStyle) -> str:
    return "battery-charging" if is_fast_charger(entity) else style.glyph


_LISTING_RULES = FilterRules(
    searchable_fields=(
        "name",
        "description",
        "city",
        "custom_category",
        "mechanic_first_name",
        "mechanic_last_name",
    ),
    brand_field="car_brands",
    criteria=frozenset(
        {"query", "category_id", "city", "district", "brands", "on_site_only", "min_rating"}
    ),
)
_PLACE_RULES = FilterRules(searchable_fields=("name", "description", "address"))
_CHARGER_RULES = FilterRules(
    searchable_fields=("name", "name_en", "type"),
    criteria=frozenset({"query", "charger_class"}),
)
_STATION_RULES = FilterRules(
    searchable_fields=("name", "brand", "address.street", "address.city"),
    brand_field="brand",
    criteria=frozenset({"query", "brands"}),
)

_DEFAULTS: dict[ViewMode, tuple[str, FilterRules, MarkerStyle, Callable[[Entity], PopupContent]]] = {
    ViewMode.listings: (
        "სერვისი",
        _LISTING_RULES,
        MarkerStyle(color="#0F4C81", selected_color="#DC2626", glyph="wrench"),
        listing_popup,
    ),
    ViewMode.laundries: (
        "სამრეცხაო",
        _PLACE_RULES,
        MarkerStyle(
            color="#0EA5E9",
            selected_color="#10B981",
            glyph="droplet",
            icon_size=14,
            selected_icon_size=16,
        ),
        laundry_popup,
    ),
    ViewMode.drives: (
        "დრაივი",
        _PLACE_RULES,
        MarkerStyle(color="#22C55E", selected_color="#16A34A", glyph="car"),
        drive_popup,
    ),
    ViewMode.chargers: (
        "დამტენი",
        _CHARGER_RULES,
        MarkerStyle(
            color="#EAB308",
            selected_color="#EAB308",
            glyph="zap",
            color_by="type",
            palette=dict(CHARGER_TYPE_COLORS),
        ),
        charger_popup,
    ),
    ViewMode.stations: (
        "სადგური",
        _STATION_RULES,
        MarkerStyle(
            color="#6B7280",
            selected_color="#6B7280",
            glyph="fuel",
            color_by="brand",
            palette=dict(FUEL_BRAND_COLORS),
        ),
        station_popup,
    ),
}


def build_strategy(
    mode: ViewMode,
    *,
    label: str | None = None,
    style_overrides: Mapping[str, Any] | None = None,
) -> CategoryStrategy:
    default_label, rules, style, popup = _DEFAULTS[mode]
    return CategoryStrategy(
        mode=mode,
        label=label or default_label,
        rules=rules,
        style=style.with_overrides(style_overrides),
        popup_builder=popup,
        glyph_for=_charger_glyph if mode == ViewMode.chargers else None,
    )


def default_strategies() -> dict[ViewMode, CategoryStrategy]:
    return {mode: build_strategy(mode) for mode in ViewMode}
