from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable

from entities.loaders import FUEL_BRANDS
from entities.types import Entity, ViewMode
from filtering.state import FilterState

Predicate = Callable[[Entity], bool]


@dataclass(frozen=True)
class FilterRules:
    """
    Category-specific filter rules.

    - searchable_fields: entity fields matched by free-text search. Dotted names reach
      into nested dict props (e.g. "address.city").
    - brand_field: field checked against `FilterState.brands` (list field = overlap,
      scalar field = membership).
    - criteria: FilterState fields this category honours; others are ignored.
    """

    searchable_fields: tuple[str, ...]
    brand_field: str | None = None
    criteria: frozenset[str] = frozenset({"query"})

    def applies(self, criterion: str) -> bool:
        return criterion in self.criteria


def field_value(entity: Entity, name: str) -> Any:
    if name == "name":
        return entity.name
    head, _, rest = name.partition(".")
    value = (entity.props or {}).get(head)
    if rest:
        return value.get(rest) if isinstance(value, dict) else None
    return value


def _text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, dict):
        return " ".join(_text(x) for x in v.values())
    if isinstance(v, (list, tuple)):
        return " ".join(_text(x) for x in v)
    return str(v)


def matches_text(entity: Entity, query: str, fields: Iterable[str]) -> bool:
    q = (query or "").strip().lower()
    if not q:
        return True
    return any(q in _text(field_value(entity, f)).lower() for f in fields)


def matches_equal(entity: Entity, field: str, expected: Any) -> bool:
    if expected is None:
        return True
    value = field_value(entity, field)
    if value is None:
        return False
    if isinstance(expected, int) and not isinstance(value, bool):
        try:
            return float(value) == expected
        except (TypeError, ValueError):
            return False
    return str(value) == str(expected)


def matches_brands(entity: Entity, field: str | None, brands: frozenset[str]) -> bool:
    if not brands:
        return True
    if field is None:
        return True
    value = field_value(entity, field)
    if value is None:
        return False
    if isinstance(value, (list, tuple, set, frozenset)):
        return any(str(v) in brands for v in value)
    return str(value) in brands


def meets_min_rating(entity: Entity, threshold: float | None) -> bool:
    if threshold is None:
        return True
    rating = field_value(entity, "rating")
    if rating is None:
        return False
    try:
        return float(rating) >= threshold
    except (TypeError, ValueError):
        return False


def is_fast_charger(entity: Entity) -> bool:
    return entity.prop("type") == "fast_charger" or entity.prop("status") == "fast"


def matches_charger_class(entity: Entity, charger_class: str | None) -> bool:
    if charger_class is None:
        return True
    if charger_class == "fast":
        return is_fast_charger(entity)
    return not is_fast_charger(entity)


def build_predicates(state: FilterState, rules: FilterRules) -> list[Predicate]:
    """
    One predicate per active criterion; an entity passes only if all of them pass.
    """
    preds: list[Predicate] = []
    if rules.applies("query") and state.query.strip():
        preds.append(lambda e: matches_text(e, state.query, rules.searchable_fields))
    if rules.applies("category_id") and state.category_id is not None:
        preds.append(lambda e: matches_equal(e, "category_id", state.category_id))
    if rules.applies("city") and state.city is not None:
        preds.append(lambda e: matches_equal(e, "city", state.city))
    if rules.applies("district") and state.district is not None:
        preds.append(lambda e: matches_equal(e, "district", state.district))
    if rules.applies("brands") and state.brands:
        preds.append(lambda e: matches_brands(e, rules.brand_field, state.brands))
    if rules.applies("on_site_only") and state.on_site_only:
        preds.append(lambda e: bool(field_value(e, "on_site_service")))
    if rules.applies("charger_class") and state.charger_class is not None:
        preds.append(lambda e: matches_charger_class(e, state.charger_class))
    if rules.applies("min_rating") and state.min_rating is not None:
        preds.append(lambda e: meets_min_rating(e, state.min_rating))
    return preds


def filter_entities(
    raw: list[Entity] | None, state: FilterState, rules: FilterRules
) -> list[Entity]:
    """
    Pure, order-preserving, conjunctive filter. Never raises on user input.
    """
    items = list(raw or [])
    preds = build_predicates(state, rules)
    if not preds:
        return items
    return [e for e in items if all(p(e) for p in preds)]


def brand_counts(stations: list[Entity]) -> dict[str, int]:
    out = {"all": len(stations), **{b: 0 for b in FUEL_BRANDS}}
    for s in stations:
        brand = s.prop("brand")
        if brand in out and brand != "all":
            out[brand] += 1
    return out


def fast_charger_count(chargers: list[Entity]) -> int:
    return sum(1 for c in chargers if is_fast_charger(c))


def facet_counts(mode: ViewMode, entities: list[Entity]) -> dict[str, Any]:
    if mode == ViewMode.stations:
        return {"brands": brand_counts(entities)}
    if mode == ViewMode.chargers:
        return {"all": len(entities), "fast": fast_charger_count(entities)}
    return {}
