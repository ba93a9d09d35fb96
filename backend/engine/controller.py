"""
Map view controller.

Owns the single map handle and everything the map page derives from provider data:
active view mode, per-mode filters, visible bounds, selection and the marker layer.
Every state change ends in `recompute()`, which re-reads the current state and rebuilds
the marker layer from scratch; no callback works from a stale snapshot.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from engine.debounce import Debouncer
from engine.modes import parse_view_mode, url_for
from engine.reconciler import MarkerReconciler, ReconcileEvent, ReconcileStats
from engine.selection import SelectionState, order_for_display
from entities.providers import EntityProvider
from entities.types import DEFAULT_VIEW_MODE, Coordinates, Entity, EntityId, ViewMode
from filtering.pipeline import facet_counts, filter_entities
from filtering.state import FilterState
from geo.aoi import BBox
from geo.viewport import ViewportTracker, restrict_to_viewport
from mapconfig.types import MapConfig
from markers.strategies import CategoryStrategy
from markers.surface import MAP_EVENTS, MapHandle, MapSurface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Navigation:
    mode: ViewMode
    redirected: bool
    changed: bool
    url: str


@dataclass(frozen=True)
class SidebarView:
    mode: ViewMode
    items: list[Entity]
    selected_id: EntityId | None
    in_view_count: int
    on_map_count: int
    total_count: int
    is_loading: bool


@dataclass(frozen=True)
class MobileSheetView:
    """
    Bottom-sheet companion: same items and selection as the sidebar, plus chips.
    """

    mode: ViewMode
    title: str
    label: str
    items: list[Entity]
    selected_id: EntityId | None
    selected: Entity | None
    facets: dict[str, Any]
    active_filter_count: int


@dataclass(frozen=True)
class _Frame:
    raw: list[Entity]
    filtered: list[Entity]
    visible: list[Entity]
    ordered: list[Entity]
    selected_id: EntityId | None
    is_loading: bool


class MapViewController:
    def __init__(
        self,
        providers: dict[ViewMode, EntityProvider],
        strategies: dict[ViewMode, CategoryStrategy],
        *,
        config: MapConfig | None = None,
        scroll_to_top: Callable[[], None] | None = None,
        on_reconcile: Callable[[ReconcileEvent], None] | None = None,
    ) -> None:
        self.providers = providers
        self.strategies = strategies
        self.config = config or MapConfig()
        self.scroll_to_top = scroll_to_top
        self.on_reconcile = on_reconcile

        self.mode: ViewMode = DEFAULT_VIEW_MODE
        self.filters: dict[ViewMode, FilterState] = {m: FilterState() for m in ViewMode}
        # Raw text as typed; only applied to filters once the debounce fires.
        self.search_text = ""
        self.viewport = ViewportTracker()
        self.selection = SelectionState()
        self.debouncer = Debouncer(self.config.searchDebounceMs / 1000.0)

        self.handle: MapHandle | None = None
        self.reconciler: MarkerReconciler | None = None
        self.last_stats: ReconcileStats | None = None
        self._unsubscribe: list[Callable[[], None]] = []

    # Lifecycle

    def init(
        self,
        surface: MapSurface,
        *,
        center: Coordinates | None = None,
        zoom: float | None = None,
    ) -> MapHandle:
        if self.handle is not None:
            self.teardown()
        view = self.config.defaultView
        handle = surface.create_map(
            center or Coordinates(lat=view.center.lat, lon=view.center.lon),
            view.zoom if zoom is None else float(zoom),
        )
        for event in MAP_EVENTS:
            handle.on(event, self._on_map_moved)
        self.handle = handle
        self.reconciler = MarkerReconciler(
            handle, on_click=self.on_marker_click, max_markers=self.config.maxMarkers
        )
        self._unsubscribe = [p.subscribe(self.on_provider_update) for p in self.providers.values()]
        self.viewport.update(handle.get_bounds())
        self.recompute("init")
        return handle

    def teardown(self) -> None:
        self.debouncer.cancel()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        if self.reconciler is not None:
            self.reconciler.clear()
        if self.handle is not None and self.handle.is_alive():
            self.handle.remove()
        self.handle = None
        self.reconciler = None
        self.viewport.reset()

    @property
    def is_ready(self) -> bool:
        return self.handle is not None and self.handle.is_alive()

    @property
    def strategy(self) -> CategoryStrategy:
        return self.strategies[self.mode]

    # View mode

    def navigate(self, segment: str | None) -> Navigation:
        mode, redirected = parse_view_mode(segment)
        changed = self.set_view_mode(mode)
        return Navigation(mode=mode, redirected=redirected, changed=changed, url=url_for(mode))

    def set_view_mode(self, mode: ViewMode) -> bool:
        if mode == self.mode:
            return False
        logger.debug("View mode %s -> %s", self.mode.value, mode.value)
        # A search typed for the previous mode must never land on the new one.
        self.debouncer.cancel()
        if self.reconciler is not None:
            self.reconciler.clear()
        self.selection.clear()
        self.search_text = ""
        self.filters[mode] = FilterState()
        self.mode = mode
        self.recompute("mode")
        return True

    # Filters

    def set_search_text(self, text: str) -> None:
        """
        Debounced free-text search; only the last text typed within the window applies.
        """
        self.search_text = "" if text is None else str(text)
        if self.debouncer.delay_s <= 0:
            self.apply_search(self.search_text)
            return
        mode = self.mode
        pending = self.search_text

        def fire() -> None:
            if self.mode == mode:
                self.apply_search(pending)

        self.debouncer.schedule(fire)

    def apply_search(self, text: str) -> None:
        self.debouncer.cancel()
        self.search_text = "" if text is None else str(text)
        self.filters[self.mode] = self.filters[self.mode].with_query(self.search_text)
        self.recompute("search")

    def set_filters(self, changes: Mapping[str, Any]) -> FilterState:
        state = self.filters[self.mode].with_changes(changes)
        self.filters[self.mode] = state
        self.recompute("filters")
        return state

    def clear_filters(self) -> None:
        self.debouncer.cancel()
        self.search_text = ""
        self.filters[self.mode] = FilterState()
        self.recompute("filters")

    @property
    def filter_state(self) -> FilterState:
        return self.filters[self.mode]

    # Map events

    def _on_map_moved(self) -> None:
        if self.handle is None or not self.handle.is_alive():
            return
        self.on_bounds_changed(self.handle.get_bounds())

    def on_bounds_changed(self, bounds: BBox | None) -> None:
        # Pan/zoom only narrows what is displayed; providers are never asked to refetch.
        self.viewport.update(bounds)
        self.recompute("bounds")

    # Selection

    def on_marker_click(self, entity_id: EntityId) -> None:
        self.selection.select(self.mode, entity_id)
        self.recompute("marker")
        if self.scroll_to_top is not None:
            self.scroll_to_top()

    def select_from_list(self, entity_id: EntityId) -> Entity | None:
        frame = self._frame()
        entity = next((e for e in frame.filtered if e.id == entity_id), None)
        if entity is None:
            return None
        self.selection.select(self.mode, entity_id)
        if entity.coordinates is not None and self.is_ready:
            self.handle.set_view(entity.coordinates, self.config.focusZoom)
        self.recompute("list")
        return entity

    def clear_selection(self) -> None:
        self.selection.clear()
        self.recompute("selection")

    @property
    def selected_id(self) -> EntityId | None:
        return self.selection.selected_id(self.mode)

    # Providers

    def on_provider_update(self, mode: ViewMode) -> None:
        # Results for a category that is not on screen wait until it becomes active.
        if mode != self.mode:
            return
        self.recompute("provider")

    # Derivation

    def _frame(self) -> _Frame:
        provider = self.providers.get(self.mode)
        state = provider.state() if provider is not None else None
        raw = list(state.items or []) if state is not None else []
        filtered = filter_entities(raw, self.filters[self.mode], self.strategy.rules)
        visible = restrict_to_viewport(filtered, self.viewport.bounds)
        selected_id = self.selection.selected_id(self.mode)
        return _Frame(
            raw=raw,
            filtered=filtered,
            visible=visible,
            ordered=order_for_display(visible, selected_id),
            selected_id=selected_id,
            is_loading=bool(state.is_loading) if state is not None else False,
        )

    def recompute(self, cause: str = "refresh") -> ReconcileStats | None:
        if self.reconciler is None or not self.is_ready:
            return None
        frame = self._frame()
        stats = self.reconciler.reconcile(
            frame.visible, selected_id=frame.selected_id, strategy=self.strategy
        )
        self.last_stats = stats
        logger.debug(
            "Recomputed %s: raw=%d filtered=%d visible=%d markers=%d",
            self.mode.value,
            len(frame.raw),
            len(frame.filtered),
            len(frame.visible),
            stats.created,
        )
        if self.on_reconcile is not None:
            self.on_reconcile(
                ReconcileEvent(
                    mode=self.mode,
                    cause=cause,
                    visible=len(frame.visible),
                    stats=stats,
                    has_selection=frame.selected_id is not None,
                )
            )
        return stats

    def sidebar(self) -> SidebarView:
        frame = self._frame()
        on_map = (
            len(self.reconciler.records)
            if self.reconciler is not None
            else sum(1 for e in frame.visible if e.coordinates is not None)
        )
        return SidebarView(
            mode=self.mode,
            items=frame.ordered,
            selected_id=frame.selected_id,
            in_view_count=len(frame.visible),
            on_map_count=on_map,
            total_count=len(frame.filtered),
            is_loading=frame.is_loading,
        )

    def mobile_sheet(self) -> MobileSheetView:
        frame = self._frame()
        selected = self.selection.selected_entity(self.mode, frame.ordered)
        return MobileSheetView(
            mode=self.mode,
            title=self.config.title_for(self.mode),
            label=self.strategy.label,
            items=frame.ordered,
            selected_id=frame.selected_id,
            selected=selected,
            # Chip counts describe the whole category, not the current filter result.
            facets=facet_counts(self.mode, frame.raw),
            active_filter_count=self.filters[self.mode].active_count(),
        )

    def snapshot(self) -> dict[str, Any]:
        side = self.sidebar()
        return {
            "mode": self.mode.value,
            "filters": self.filters[self.mode].as_dict(),
            "searchText": self.search_text,
            "bounds": None if self.viewport.bounds is None else self.viewport.bounds.as_dict(),
            "selectedId": side.selected_id,
            "counts": {
                "total": side.total_count,
                "inView": side.in_view_count,
                "onMap": side.on_map_count,
            },
            "isLoading": side.is_loading,
            "reconcile": None if self.last_stats is None else self.last_stats.as_dict(),
        }
