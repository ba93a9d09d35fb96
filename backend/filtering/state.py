from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Mapping

ChargerClass = Literal["fast", "level2"]

_CHARGER_CLASSES: dict[str, ChargerClass] = {
    "fast": "fast",
    "fast_charger": "fast",
    "level2": "level2",
    "level_2": "level2",
}

# Values the UI sends for "no filter" in select boxes.
_UNSET_TOKENS = {"", "all", "all_cities", "any", "none", "null"}


@dataclass(frozen=True)
class FilterState:
    """
    Per-category filter criteria. The default instance is the identity filter.

    `charger_class="fast"` is the fast-charger-only flag.
    """

    query: str = ""
    category_id: int | None = None
    city: str | None = None
    district: str | None = None
    brands: frozenset[str] = field(default_factory=frozenset)
    on_site_only: bool = False
    charger_class: ChargerClass | None = None
    min_rating: float | None = None

    def with_changes(self, changes: Mapping[str, Any]) -> "FilterState":
        merged = {**self.as_dict(), **changes}
        return coerce_filter_state(merged)

    def cleared(self) -> "FilterState":
        return FilterState()

    def with_query(self, query: str) -> "FilterState":
        return replace(self, query=_coerce_text(query))

    @property
    def is_default(self) -> bool:
        return self == FilterState()

    def active_count(self) -> int:
        return sum(
            [
                bool(self.query.strip()),
                self.category_id is not None,
                self.city is not None,
                self.district is not None,
                bool(self.brands),
                self.on_site_only,
                self.charger_class is not None,
                self.min_rating is not None,
            ]
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "category_id": self.category_id,
            "city": self.city,
            "district": self.district,
            "brands": sorted(self.brands),
            "on_site_only": self.on_site_only,
            "charger_class": self.charger_class,
            "min_rating": self.min_rating,
        }


def coerce_filter_state(raw: Mapping[str, Any] | None) -> FilterState:
    """
    Build a FilterState from loosely-typed input (query params, JSON bodies, UI widgets).

    Malformed values are coerced to "no filter" instead of raising: this runs on every
    keystroke.
    """
    data = dict(raw or {})
    return FilterState(
        query=_coerce_text(data.get("query")),
        category_id=_coerce_int(data.get("category_id")),
        city=_coerce_choice(data.get("city")),
        district=_coerce_choice(data.get("district")),
        brands=_coerce_str_set(data.get("brands")),
        on_site_only=_coerce_bool(data.get("on_site_only")),
        charger_class=_CHARGER_CLASSES.get(str(data.get("charger_class") or "").strip().lower()),
        min_rating=_coerce_float(data.get("min_rating")),
    )


def _coerce_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, str):
        return v
    return str(v)


def _coerce_choice(v: Any) -> str | None:
    if v is None or not isinstance(v, (str, int)) or isinstance(v, bool):
        return None
    s = str(v).strip()
    if s.lower() in _UNSET_TOKENS:
        return None
    return s


def _coerce_int(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    try:
        s = str(v).strip()
        if s.lower() in _UNSET_TOKENS:
            return None
        f = float(s)
    except (TypeError, ValueError):
        return None
    if f != f or not f.is_integer():
        return None
    return int(f)


def _coerce_float(v: Any) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    if f != f or f in (float("inf"), float("-inf")):
        return None
    return f


def _coerce_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return v == 1
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _coerce_str_set(v: Any) -> frozenset[str]:
    if v is None:
        return frozenset()
    if isinstance(v, str):
        items = [p for p in v.split(",")]
    elif isinstance(v, (list, tuple, set, frozenset)):
        items = list(v)
    else:
        return frozenset()
    out = {str(p).strip() for p in items if p is not None and str(p).strip()}
    return frozenset(p for p in out if p.lower() not in _UNSET_TOKENS)
