from __future__ import annotations

from entities.types import DEFAULT_VIEW_MODE, ViewMode

MAP_ROUTE_PREFIX = "/map"


def parse_view_mode(segment: str | None) -> tuple[ViewMode, bool]:
    """
    Resolve a URL path segment to a view mode.

    Returns (mode, redirected). A missing segment means the default mode without a
    redirect; an unknown one falls back to the default and asks for a redirect.
    """
    raw = str(segment or "").strip().strip("/").lower()
    if not raw:
        return DEFAULT_VIEW_MODE, False
    try:
        return ViewMode(raw), False
    except ValueError:
        return DEFAULT_VIEW_MODE, True


def url_for(mode: ViewMode) -> str:
    return f"{MAP_ROUTE_PREFIX}/{mode.value}"
