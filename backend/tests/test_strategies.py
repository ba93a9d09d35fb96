from __future__ import annotations

from entities.types import Coordinates, Entity, ViewMode
from markers.strategies import build_strategy, default_strategies

TBILISI = Coordinates(lat=41.7151, lon=44.8271)


def _entity(mode: ViewMode, **props) -> Entity:
    return Entity(id=props.pop("id", 1), category=mode, name=props.pop("name", "Place"), coordinates=TBILISI, props=props)


def test_every_mode_has_a_strategy():
    strategies = default_strategies()
    assert set(strategies) == set(ViewMode)
    assert strategies[ViewMode.drives].style.glyph == "car"


def test_listing_visual_and_popup():
    s = build_strategy(ViewMode.listings)
    e = _entity(ViewMode.listings, id=42, city="Tbilisi", district="Vake")

    assert s.build_visual(e, False).as_dict() == {
        "size": 28,
        "color": "#0F4C81",
        "iconGlyph": "wrench",
        "iconSize": 12,
        "borderWidth": 3,
    }
    assert s.build_visual(e, True).color == "#DC2626"

    popup = s.build_popup(e)
    assert dict(popup.fields)["მისამართი"] == "Tbilisi, Vake"
    assert popup.action.href == "/service/42"
    assert popup.as_dict()["placeholder"] == "🔧 სერვისის ფოტო"


def test_laundry_call_action_only_with_contact_number():
    s = build_strategy(ViewMode.laundries)
    with_phone = s.build_popup(_entity(ViewMode.laundries, contact_number="+995555", water_price=1, box_count=4))
    without = s.build_popup(_entity(ViewMode.laundries))

    assert with_phone.action.href == "tel:+995555"
    assert with_phone.badges == ("წყალი: 1₾",)
    assert without.action is None
    assert s.build_visual(_entity(ViewMode.laundries), True).color == "#10B981"


def test_charger_color_follows_type_and_fast_glyph():
    s = build_strategy(ViewMode.chargers)
    fast = _entity(ViewMode.chargers, type="fast_charger")
    hotel = _entity(ViewMode.chargers, type="hotel")

    assert s.build_visual(fast, False).color == "#16A34A"
    assert s.build_visual(fast, False).icon_glyph == "battery-charging"
    assert s.build_visual(hotel, False).color == "#8B5CF6"
    assert s.build_visual(hotel, False).icon_glyph == "zap"
    # Selection only enlarges palette-colored markers.
    assert s.build_visual(hotel, True).color == "#8B5CF6"
    assert s.build_visual(hotel, True).size == 32

    popup = s.build_popup(fast)
    assert popup.badges == ("⚡ სწრაფი დამტენი",)
    assert popup.action.kind == "route"
    assert "destination=41.7151,44.8271" in popup.action.href


def test_station_brand_color_logo_and_fuel_fields():
    s = build_strategy(ViewMode.stations)
    e = _entity(
        ViewMode.stations,
        brand="WISSOL",
        fuel_types={"diesel": True, "octane_95": False, "lpg": True},
        address={"street": "Tsereteli Ave", "housenumber": "1", "city": "Tbilisi"},
    )
    popup = s.build_popup(e)

    assert s.build_visual(e, False).color == "#E31E24"
    assert s.build_visual(_entity(ViewMode.stations, brand="OTHER"), False).color == "#6B7280"
    assert popup.photo == "/fuel-company-logos/wissol-logo.png"
    assert dict(popup.fields)["საწვავი"] == "დიზელი, LPG"
    assert dict(popup.fields)["მისამართი"] == "Tsereteli Ave 1, Tbilisi"


def test_style_overrides_from_config():
    s = build_strategy(
        ViewMode.stations,
        label="Fuel",
        style_overrides={"size": 24, "palette": {"GULF": "#000000"}, "unknown": 1},
    )
    gulf = _entity(ViewMode.stations, brand="GULF")
    socar = _entity(ViewMode.stations, brand="SOCAR")

    assert s.label == "Fuel"
    assert s.build_visual(gulf, False).color == "#000000"
    assert s.build_visual(gulf, False).size == 24
    assert s.build_visual(socar, False).color == "#00A651"
