from __future__ import annotations

from entities.types import Entity, EntityId, ViewMode


class SelectionState:
    """
    The selected entity, scoped per category.

    Stored as a per-mode map so an id that exists in two categories can never leak across
    them; selecting anything clears every other category, so at most one entity is
    selected engine-wide.
    """

    def __init__(self) -> None:
        self._by_mode: dict[ViewMode, EntityId | None] = {m: None for m in ViewMode}

    def select(self, mode: ViewMode, entity_id: EntityId | None) -> None:
        for m in self._by_mode:
            self._by_mode[m] = None
        self._by_mode[mode] = entity_id

    def clear(self, mode: ViewMode | None = None) -> None:
        if mode is None:
            for m in self._by_mode:
                self._by_mode[m] = None
            return
        self._by_mode[mode] = None

    def selected_id(self, mode: ViewMode) -> EntityId | None:
        return self._by_mode.get(mode)

    def selected_entity(self, mode: ViewMode, entities: list[Entity]) -> Entity | None:
        sid = self.selected_id(mode)
        if sid is None:
            return None
        for e in entities:
            if e.id == sid:
                return e
        return None

    def active(self) -> tuple[ViewMode, EntityId] | None:
        for mode, sid in self._by_mode.items():
            if sid is not None:
                return mode, sid
        return None


def order_for_display(entities: list[Entity], selected_id: EntityId | None) -> list[Entity]:
    """
    Move the selected entity to the front; keep everyone else's relative order.
    """
    if selected_id is None:
        return list(entities)
    head = [e for e in entities if e.id == selected_id]
    if not head:
        return list(entities)
    return [*head, *(e for e in entities if e.id != selected_id)]
