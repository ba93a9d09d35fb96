"""
Marker reconciliation.

Full rebuild on every call: every marker this reconciler created is removed, then one
marker per eligible entity is created from scratch. Content changes therefore never mutate
a live marker. A keyed diff (entity id -> marker) would cut churn for very large layers;
the visible marker set would be the same either way.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from entities.types import Entity, EntityId, ViewMode
from markers.strategies import CategoryStrategy
from markers.surface import MapHandle, SurfaceClosedError
from markers.types import MarkerRecord

logger = logging.getLogger(__name__)

ClickHandler = Callable[[EntityId], None]


@dataclass(frozen=True)
class ReconcileStats:
    removed: int
    created: int
    capped: int
    aborted: bool

    def as_dict(self) -> dict[str, int | bool]:
        return {
            "removed": self.removed,
            "created": self.created,
            "capped": self.capped,
            "aborted": self.aborted,
        }


@dataclass(frozen=True)
class ReconcileEvent:
    """
    One `recompute()` as seen from outside: which mode, what caused it, how many entities
    were in view and what the rebuild did to the marker layer.
    """

    mode: ViewMode
    cause: str
    visible: int
    stats: ReconcileStats
    has_selection: bool


def cap_markers(
    entities: list[Entity], *, max_markers: int, selected_id: EntityId | None
) -> tuple[list[Entity], int]:
    """
    Keep at most `max_markers` entities, in input order.

    The selected entity always survives the cap (it replaces the last kept slot).
    """
    if max_markers <= 0 or len(entities) <= max_markers:
        return list(entities), 0
    kept = entities[:max_markers]
    if selected_id is not None and all(e.id != selected_id for e in kept):
        selected = next((e for e in entities if e.id == selected_id), None)
        if selected is not None:
            kept = [*kept[:-1], selected]
    return kept, len(entities) - len(kept)


class MarkerReconciler:
    def __init__(
        self,
        handle: MapHandle,
        *,
        on_click: ClickHandler,
        max_markers: int = 2_500,
    ) -> None:
        self.handle = handle
        self._on_click = on_click
        self.max_markers = int(max_markers)
        self._records: list[MarkerRecord] = []

    @property
    def records(self) -> list[MarkerRecord]:
        return list(self._records)

    def record_for(self, entity_id: EntityId) -> MarkerRecord | None:
        for r in self._records:
            if r.entity_id == entity_id:
                return r
        return None

    def clear(self) -> int:
        """
        Remove every marker this reconciler created. Returns how many were removed.
        """
        removed = 0
        alive = self.handle.is_alive()
        for r in self._records:
            if alive and r.handle is not None:
                self.handle.remove_marker(r.handle)
            removed += 1
        self._records = []
        return removed

    def open_popup(self, entity_id: EntityId) -> bool:
        record = self.record_for(entity_id)
        if record is None or record.handle is None or not self.handle.is_alive():
            return False
        record.handle.open_popup()
        return True

    def _bind_click(self, marker, entity_id: EntityId) -> None:
        # One handler per marker, closing over its own id.
        marker.on("click", lambda: self._on_click(entity_id))

    def reconcile(
        self,
        entities: list[Entity],
        *,
        selected_id: EntityId | None,
        strategy: CategoryStrategy,
    ) -> ReconcileStats:
        removed = self.clear()
        eligible = [e for e in entities if e.coordinates is not None]
        eligible, capped = cap_markers(
            eligible, max_markers=self.max_markers, selected_id=selected_id
        )

        created = 0
        aborted = False
        for entity in eligible:
            if not self.handle.is_alive():
                aborted = True
                break
            is_selected = selected_id is not None and entity.id == selected_id
            visual = strategy.build_visual(entity, is_selected)
            popup = strategy.build_popup(entity)
            try:
                marker = self.handle.add_marker(entity.coordinates, visual)
            except SurfaceClosedError:
                aborted = True
                break
            marker.bind_popup(popup)
            self._bind_click(marker, entity.id)
            self._records.append(
                MarkerRecord(
                    entity_id=entity.id,
                    coordinates=entity.coordinates,
                    visual=visual,
                    popup=popup,
                    is_selected=is_selected,
                    handle=marker,
                )
            )
            created += 1

        if aborted:
            logger.debug(
                "Reconcile of %s aborted: map removed after %d markers",
                strategy.mode.value,
                created,
            )
        elif selected_id is not None:
            self.open_popup(selected_id)

        return ReconcileStats(removed=removed, created=created, capped=capped, aborted=aborted)
