from __future__ import annotations

import pydantic
import pytest

from entities.providers import FileEntityProvider, StaticEntityProvider
from entities.types import ViewMode
from mapconfig.registry import (
    build_providers,
    build_strategies,
    clear_config_cache,
    get_config,
    resolve_repo_path,
)


@pytest.fixture(autouse=True)
def _fresh_config():
    clear_config_cache()
    yield
    clear_config_cache()


def test_repo_config_covers_every_mode():
    cfg = get_config()

    assert set(cfg.categories) == set(ViewMode)
    assert cfg.defaultView.center.lat == pytest.approx(41.7151)
    assert cfg.defaultView.zoom == 11
    assert cfg.focusZoom == 15
    assert cfg.searchDebounceMs == 500
    assert cfg.title_for(ViewMode.stations) == "Fuel stations"


def test_env_override_and_style_overrides(tmp_path, monkeypatch):
    path = tmp_path / "map.yaml"
    path.write_text(
        """
searchDebounceMs: 250
categories:
  drives:
    title: Drives
    style: {color: "#111111"}
""",
        encoding="utf-8",
    )
    monkeypatch.setenv("MAPVIEW_CONFIG_PATH", str(path))

    cfg = get_config()
    strategies = build_strategies(cfg)
    providers = build_providers(cfg)

    assert cfg.searchDebounceMs == 250
    assert cfg.title_for(ViewMode.chargers) == "Chargers"
    assert strategies[ViewMode.drives].style.color == "#111111"
    assert all(isinstance(p, StaticEntityProvider) for p in providers.values())


def test_missing_file_falls_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("MAPVIEW_CONFIG_PATH", str(tmp_path / "nope.yaml"))
    cfg = get_config()
    assert cfg.categories == {}
    assert cfg.maxMarkers == 2_500


def test_unknown_mode_is_rejected(tmp_path, monkeypatch):
    path = tmp_path / "map.yaml"
    path.write_text("categories:\n  spaceships: {title: Nope}\n", encoding="utf-8")
    monkeypatch.setenv("MAPVIEW_CONFIG_PATH", str(path))

    with pytest.raises(pydantic.ValidationError):
        get_config()


def test_file_sources_resolve_against_repo_root():
    providers = build_providers(get_config())
    chargers = providers[ViewMode.chargers]

    assert isinstance(chargers, FileEntityProvider)
    assert chargers.path == resolve_repo_path("data/chargers.geojson")
    assert resolve_repo_path("/data/chargers.geojson") == chargers.path
    assert chargers.path.exists()
