from __future__ import annotations

import asyncio

from engine.controller import MapViewController
from entities.providers import ProviderState, StaticEntityProvider
from entities.types import Coordinates, Entity, ViewMode
from geo.aoi import BBox
from mapconfig.types import MapConfig
from markers.strategies import default_strategies
from markers.surface import InMemoryMap, InMemorySurface


def _entity(mode: ViewMode, i, lat: float | None, lon: float | None, **props) -> Entity:
    coords = Coordinates(lat=lat, lon=lon) if lat is not None else None
    return Entity(id=i, category=mode, name=props.pop("name", f"{mode.value} {i}"), coordinates=coords, props=props)


def _listings() -> list[Entity]:
    return [
        _entity(ViewMode.listings, 1, 41.72, 44.70, name="Brake Masters", city="Tbilisi"),
        _entity(ViewMode.listings, 2, 41.72, 44.72, city="Tbilisi"),
        _entity(ViewMode.listings, 42, 41.72, 44.74, city="Tbilisi"),
        _entity(ViewMode.listings, 4, 41.72, 44.80, city="Batumi"),
        _entity(ViewMode.listings, 5, 41.72, 44.82, city="Tbilisi"),
        _entity(ViewMode.listings, 6, 41.72, 44.84, name="Brake Point", city="Tbilisi"),
        _entity(ViewMode.listings, 7, None, None, city="Tbilisi"),
    ]


def _laundries() -> list[Entity]:
    return [
        _entity(ViewMode.laundries, 10, 41.73, 44.76),
        _entity(ViewMode.laundries, 11, 41.74, 44.78),
    ]


def _providers(overrides: dict | None = None) -> dict:
    providers = {
        ViewMode.listings: StaticEntityProvider(ViewMode.listings, _listings()),
        ViewMode.laundries: StaticEntityProvider(ViewMode.laundries, _laundries()),
        ViewMode.drives: StaticEntityProvider(ViewMode.drives, []),
        ViewMode.chargers: StaticEntityProvider(ViewMode.chargers, []),
        ViewMode.stations: StaticEntityProvider(ViewMode.stations, []),
    }
    providers.update(overrides or {})
    return providers


def _controller(providers=None, scroll_to_top=None, **cfg) -> tuple[MapViewController, InMemoryMap]:
    controller = MapViewController(
        providers or _providers(),
        default_strategies(),
        config=MapConfig(**cfg),
        scroll_to_top=scroll_to_top,
    )
    handle = controller.init(InMemorySurface())
    return controller, handle


def test_init_shows_markers_for_in_view_entities_with_coordinates():
    controller, handle = _controller()
    side = controller.sidebar()

    assert controller.mode == ViewMode.listings
    assert [e.id for e in side.items] == [1, 2, 42, 4, 5, 6, 7]
    assert side.on_map_count == 6
    assert len(handle.markers) == 6
    assert controller.reconciler.record_for(7) is None


def test_marker_click_selects_orders_sidebar_and_opens_popup():
    scrolls: list[int] = []
    controller, handle = _controller(scroll_to_top=lambda: scrolls.append(1))

    controller.reconciler.record_for(42).handle.fire("click")

    assert controller.selected_id == 42
    assert controller.sidebar().items[0].id == 42
    assert controller.reconciler.record_for(42).handle.popup_open
    assert controller.reconciler.record_for(42).is_selected
    others = [r for r in controller.reconciler.records if r.entity_id != 42]
    assert others and all(not r.is_selected for r in others)
    assert scrolls == [1]
    # Mobile sheet sees the same selection.
    sheet = controller.mobile_sheet()
    assert sheet.selected_id == 42
    assert sheet.selected.id == 42
    assert [e.id for e in sheet.items] == [e.id for e in controller.sidebar().items]


def test_pan_removes_exactly_the_markers_that_left_the_view():
    controller, handle = _controller()
    controller.on_marker_click(5)
    before = {r.entity_id: (r.visual, r.is_selected) for r in controller.reconciler.records}

    # Only the eastern three (44.80, 44.82, 44.84) stay in view.
    handle.fit_bounds(BBox(min_lon=44.79, min_lat=41.70, max_lon=44.90, max_lat=41.75))

    after = {r.entity_id: (r.visual, r.is_selected) for r in controller.reconciler.records}
    assert set(before) - set(after) == {1, 2, 42}
    assert set(after) == {4, 5, 6}
    assert all(after[i] == before[i] for i in after)
    assert after[5][1] is True
    assert len(handle.markers) == 3


def test_switching_mode_leaves_no_markers_of_the_previous_category():
    controller, handle = _controller()
    controller.on_marker_click(1)

    changed = controller.set_view_mode(ViewMode.laundries)

    assert changed
    assert controller.selected_id is None
    assert {r.entity_id for r in controller.reconciler.records} == {10, 11}
    assert len(handle.markers) == 2
    assert handle.open_marker is None
    assert controller.set_view_mode(ViewMode.laundries) is False


def test_search_is_debounced_and_only_last_text_applies():
    async def run() -> tuple[str, str, list]:
        controller, _ = _controller(searchDebounceMs=20)
        controller.set_search_text("b")
        controller.set_search_text("brake")
        before = controller.filter_state.query
        await asyncio.sleep(0.1)
        return before, controller.filter_state.query, controller.sidebar().items

    before, after, items = asyncio.run(run())

    assert before == ""
    assert after == "brake"
    assert [e.id for e in items] == [1, 6]


def test_mode_switch_discards_pending_search():
    async def run():
        controller, _ = _controller(searchDebounceMs=20)
        controller.set_search_text("brake")
        controller.set_view_mode(ViewMode.laundries)
        await asyncio.sleep(0.1)
        return controller

    controller = asyncio.run(run())

    assert controller.mode == ViewMode.laundries
    assert controller.filter_state.is_default
    assert controller.filters[ViewMode.listings].query == ""
    assert [e.id for e in controller.sidebar().items] == [10, 11]
    assert not controller.debouncer.pending


def test_filters_apply_immediately_and_clear():
    controller, _ = _controller()

    controller.set_filters({"city": "Batumi"})
    assert [e.id for e in controller.sidebar().items] == [4]
    assert controller.mobile_sheet().active_filter_count == 1

    controller.set_filters({"min_rating": "not a number"})
    assert controller.filter_state.min_rating is None

    controller.clear_filters()
    assert controller.filter_state.is_default
    assert len(controller.sidebar().items) == 7


def test_select_from_list_focuses_the_entity():
    controller, handle = _controller()

    entity = controller.select_from_list(42)

    assert entity.id == 42
    assert handle.zoom == 15.0
    assert handle.center == Coordinates(lat=41.72, lon=44.74)
    assert controller.reconciler.record_for(42).handle.popup_open
    assert controller.sidebar().items[0].id == 42
    assert controller.select_from_list(999) is None


def test_clear_selection_restores_order():
    controller, _ = _controller()
    controller.on_marker_click(6)
    controller.clear_selection()

    assert controller.selected_id is None
    assert [e.id for e in controller.sidebar().items][:2] == [1, 2]


def test_late_results_for_inactive_category_are_ignored():
    chargers = StaticEntityProvider(ViewMode.chargers, [])
    controller, handle = _controller(_providers({ViewMode.chargers: chargers}))
    before = [r.entity_id for r in controller.reconciler.records]

    chargers.set_items([_entity(ViewMode.chargers, "charger-0", 41.72, 44.75, type="fast_charger")])

    assert controller.mode == ViewMode.listings
    assert [r.entity_id for r in controller.reconciler.records] == before

    controller.set_view_mode(ViewMode.chargers)
    assert [r.entity_id for r in controller.reconciler.records] == ["charger-0"]
    assert controller.mobile_sheet().facets == {"all": 1, "fast": 1}


def test_active_provider_update_rebuilds_markers():
    listings = StaticEntityProvider(ViewMode.listings, _listings())
    controller, handle = _controller(_providers({ViewMode.listings: listings}))

    listings.set_items(_listings()[:2])

    assert [r.entity_id for r in controller.reconciler.records] == [1, 2]
    assert len(handle.markers) == 2


def test_navigate_redirects_unknown_segments():
    controller, _ = _controller()

    nav = controller.navigate("stations")
    assert nav.mode == ViewMode.stations and nav.changed and not nav.redirected

    nav = controller.navigate("spaceships")
    assert nav.mode == ViewMode.listings
    assert nav.redirected
    assert nav.url == "/map/listings"
    assert controller.mode == ViewMode.listings


def test_teardown_removes_map_and_stops_listening():
    listings = StaticEntityProvider(ViewMode.listings, _listings())
    controller, handle = _controller(_providers({ViewMode.listings: listings}))

    controller.teardown()
    listings.set_items([])

    assert not handle.is_alive()
    assert controller.recompute() is None
    assert controller.handle is None


def test_loading_state_is_reported():
    class Loading(StaticEntityProvider):
        def state(self):
            return ProviderState(items=[], is_loading=True)

    controller, _ = _controller(_providers({ViewMode.listings: Loading(ViewMode.listings)}))
    side = controller.sidebar()

    assert side.is_loading
    assert side.items == []
    assert controller.snapshot()["isLoading"] is True


def test_search_outside_an_event_loop_applies_immediately():
    controller, _ = _controller(searchDebounceMs=500)

    controller.set_search_text("brake")

    assert controller.filter_state.query == "brake"
    assert not controller.debouncer.pending
    assert [e.id for e in controller.sidebar().items] == [1, 6]


def test_filter_keys_are_plain_data():
    controller, _ = _controller()

    state = controller.set_filters({"self": 1, "changes": "x", "city": "Batumi"})

    assert state.city == "Batumi"
    assert [e.id for e in controller.sidebar().items] == [4]


def test_mobile_sheet_drops_selected_entity_that_left_the_view():
    controller, handle = _controller()
    controller.on_marker_click(1)
    assert controller.mobile_sheet().selected.id == 1

    controller.on_bounds_changed(BBox(min_lon=44.79, min_lat=41.70, max_lon=44.90, max_lat=41.75))

    sheet = controller.mobile_sheet()
    assert sheet.selected_id == 1
    assert sheet.selected is None
