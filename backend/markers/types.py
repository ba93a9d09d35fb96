from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from entities.types import Coordinates, EntityId

ActionKind = Literal["details", "call", "route"]


@dataclass(frozen=True)
class MarkerVisual:
    """
    Visual style of one marker: a round badge with a glyph inside.
    """

    size: int
    color: str
    icon_glyph: str
    icon_size: int = 12
    border_width: int = 3

    def as_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "color": self.color,
            "iconGlyph": self.icon_glyph,
            "iconSize": self.icon_size,
            "borderWidth": self.border_width,
        }


@dataclass(frozen=True)
class PopupAction:
    kind: ActionKind
    label: str
    href: str


@dataclass(frozen=True)
class PopupContent:
    """
    Structured popup payload: name, photo (or placeholder), a few fields, one action.
    """

    title: str
    photo: str | None
    placeholder: str
    description: str | None = None
    fields: tuple[tuple[str, str], ...] = ()
    badges: tuple[str, ...] = ()
    action: PopupAction | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "photo": self.photo,
            "placeholder": self.placeholder if self.photo is None else None,
            "description": self.description,
            "fields": [{"label": k, "value": v} for k, v in self.fields],
            "badges": list(self.badges),
            "action": None
            if self.action is None
            else {
                "kind": self.action.kind,
                "label": self.action.label,
                "href": self.action.href,
            },
        }


@dataclass
class MarkerRecord:
    """
    What the reconciler knows about one marker it created.
    """

    entity_id: EntityId
    coordinates: Coordinates
    visual: MarkerVisual
    popup: PopupContent
    is_selected: bool
    handle: Any = field(default=None, repr=False)
