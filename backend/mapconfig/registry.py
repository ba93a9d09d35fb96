from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml

from entities.providers import EntityProvider, FileEntityProvider, StaticEntityProvider
from entities.types import ViewMode
from mapconfig.types import MapConfig
from markers.strategies import CategoryStrategy, build_strategy


def _repo_root() -> Path:
    # .../backend/mapconfig/registry.py -> repo root is 2 levels up
    return Path(__file__).resolve().parents[2]


def config_path() -> Path:
    return Path(os.getenv("MAPVIEW_CONFIG_PATH") or (_repo_root() / "config" / "map.yaml"))


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid map config yaml root: {path}")
    return data


@lru_cache(maxsize=1)
def get_config() -> MapConfig:
    path = config_path()
    if not path.exists():
        # Defaults only: Tbilisi view, no file-backed categories.
        return MapConfig()
    return MapConfig.model_validate(_load_yaml(path))


def clear_config_cache() -> None:
    """
    Clear the cached map config.

    Useful during development and in tests: YAML changes are otherwise not picked up until
    the process restarts.
    """
    get_config.cache_clear()


def resolve_repo_path(repo_relative: str) -> Path:
    # Allow both "data/..." and "/data/..." inputs (normalize to repo-relative).
    p = Path(repo_relative or "")
    if p.is_absolute() and p.exists():
        return p
    rel = (repo_relative or "").lstrip("/")
    return _repo_root() / rel


def build_strategies(cfg: MapConfig) -> dict[ViewMode, CategoryStrategy]:
    out: dict[ViewMode, CategoryStrategy] = {}
    for mode in ViewMode:
        cat = cfg.categories.get(mode)
        out[mode] = build_strategy(
            mode,
            label=cat.label if cat is not None else None,
            style_overrides=cat.style if cat is not None else None,
        )
    return out


def build_providers(cfg: MapConfig) -> dict[ViewMode, EntityProvider]:
    """
    One provider per category; categories without a configured source stay empty.
    """
    out: dict[ViewMode, EntityProvider] = {}
    for mode in ViewMode:
        cat = cfg.categories.get(mode)
        if cat is None or cat.source is None:
            out[mode] = StaticEntityProvider(mode, [])
            continue
        out[mode] = FileEntityProvider(
            mode,
            source_type=cat.source.type,
            path=resolve_repo_path(cat.source.path),
        )
    return out
