"""
Entity providers.

A provider owns the raw entity array of one category and refreshes it independently of the
map engine. The engine only ever reads `state()`; it never asks a provider to refetch as a
side effect of filtering or panning.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Protocol

from entities.loaders import load_entities
from entities.types import Entity, ViewMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderState:
    items: list[Entity] = field(default_factory=list)
    is_loading: bool = False
    error: str | None = None


Listener = Callable[[ViewMode], None]


class EntityProvider(Protocol):
    mode: ViewMode

    def state(self) -> ProviderState: ...

    async def refresh(self) -> ProviderState: ...

    def subscribe(self, listener: Listener) -> Callable[[], None]: ...


class _BaseProvider:
    def __init__(self, mode: ViewMode) -> None:
        self.mode = mode
        self._state = ProviderState(is_loading=True)
        self._listeners: list[Listener] = []

    def state(self) -> ProviderState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: ProviderState) -> ProviderState:
        self._state = state
        for listener in list(self._listeners):
            listener(self.mode)
        return state


class StaticEntityProvider(_BaseProvider):
    """
    Provider backed by an in-memory list (tests, fixtures, pre-fetched rows).
    """

    def __init__(self, mode: ViewMode, items: list[Entity] | None = None) -> None:
        super().__init__(mode)
        self._items = list(items or [])
        self._state = ProviderState(items=list(self._items), is_loading=False)

    def set_items(self, items: list[Entity]) -> None:
        self._items = list(items)
        self._publish(ProviderState(items=list(self._items), is_loading=False))

    async def refresh(self) -> ProviderState:
        return self._publish(ProviderState(items=list(self._items), is_loading=False))


class FileEntityProvider(_BaseProvider):
    """
    Loads one category from a JSON / GeoJSON file in a worker thread.

    Failures surface as an empty, non-loading state; error reporting is the caller's concern.
    """

    def __init__(
        self,
        mode: ViewMode,
        *,
        source_type: str,
        path: Path,
        loader: Callable[[ViewMode, str, Path], list[Entity]] = load_entities,
    ) -> None:
        super().__init__(mode)
        self.source_type = source_type
        self.path = path
        self._loader = loader

    async def refresh(self) -> ProviderState:
        self._state = ProviderState(items=self._state.items, is_loading=True)
        try:
            items = await asyncio.to_thread(
                self._loader, self.mode, self.source_type, self.path
            )
        except Exception as exc:  # noqa: BLE001 (provider failure == empty category)
            logger.warning("Failed to load %s from %s: %s", self.mode.value, self.path, exc)
            return self._publish(
                ProviderState(items=[], is_loading=False, error=f"{type(exc).__name__}: {exc}")
            )
        logger.debug("Loaded %d %s from %s", len(items), self.mode.value, self.path)
        return self._publish(ProviderState(items=items, is_loading=False))


async def refresh_all(providers: dict[ViewMode, EntityProvider]) -> dict[ViewMode, ProviderState]:
    results = await asyncio.gather(*(p.refresh() for p in providers.values()))
    return dict(zip(providers.keys(), results))
