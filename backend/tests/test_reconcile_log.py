from __future__ import annotations

from engine.controller import MapViewController
from engine.reconciler import ReconcileEvent, ReconcileStats
from entities.providers import StaticEntityProvider
from entities.types import Coordinates, Entity, ViewMode
from geo.aoi import BBox
from mapconfig.types import MapConfig
from markers.strategies import default_strategies
from markers.surface import InMemorySurface
from telemetry.recorder import ReconcileRecorder
from telemetry.singleton import get_recorder, reset_recorder


def _event(mode=ViewMode.listings, cause="bounds", *, removed=0, created=0, capped=0, aborted=False):
    return ReconcileEvent(
        mode=mode,
        cause=cause,
        visible=created + capped,
        stats=ReconcileStats(removed=removed, created=created, capped=capped, aborted=aborted),
        has_selection=False,
    )


def test_rows_are_buffered_until_batch_is_full(tmp_path):
    recorder = ReconcileRecorder.open(tmp_path / "reconciles.duckdb", batch_size=2)

    recorder.record(_event(created=3))
    assert recorder.pending == 1
    assert recorder.conn.execute("select count(*) from reconciles").fetchone()[0] == 0

    recorder.record(_event(removed=3, created=1))
    assert recorder.pending == 0
    assert recorder.conn.execute("select count(*) from reconciles").fetchone()[0] == 2

    recorder.close()


def test_churn_groups_by_mode_and_cause(tmp_path):
    recorder = ReconcileRecorder.open(tmp_path / "reconciles.duckdb")
    recorder.record(_event(cause="init", created=4))
    recorder.record(_event(cause="bounds", removed=4, created=2))
    recorder.record(_event(cause="bounds", removed=2, created=6, capped=1))
    recorder.record(_event(ViewMode.stations, cause="mode", created=2))

    rows = recorder.churn(view_mode="listings")

    assert [(r["cause"], r["n"], r["churn"]) for r in rows] == [("bounds", 2, 14), ("init", 1, 4)]
    bounds = rows[0]
    assert bounds["avgCreated"] == 4.0
    assert bounds["maxCreated"] == 6
    assert bounds["cappedCount"] == 1
    assert bounds["abortedCount"] == 0
    assert [r["viewMode"] for r in recorder.churn(cause="mode")] == ["stations"]

    recorder.close()


def test_recent_aborts_lists_only_aborted_rebuilds(tmp_path):
    recorder = ReconcileRecorder.open(tmp_path / "reconciles.duckdb")
    recorder.record(_event(created=5))
    recorder.record(_event(ViewMode.chargers, cause="provider", created=1, aborted=True))

    aborts = recorder.recent_aborts()

    assert len(aborts) == 1
    assert aborts[0]["viewMode"] == "chargers"
    assert aborts[0]["cause"] == "provider"
    assert aborts[0]["created"] == 1

    recorder.close()


def test_controller_reports_each_recompute_with_its_cause(tmp_path):
    recorder = ReconcileRecorder.open(tmp_path / "reconciles.duckdb")
    items = [
        Entity(id=i, category=ViewMode.listings, name=f"s{i}", coordinates=Coordinates(lat=41.72, lon=lon))
        for i, lon in [(1, 44.70), (2, 44.80)]
    ]
    providers = {m: StaticEntityProvider(m, items if m == ViewMode.listings else []) for m in ViewMode}
    controller = MapViewController(
        providers, default_strategies(), config=MapConfig(), on_reconcile=recorder.record
    )
    controller.init(InMemorySurface())

    controller.on_marker_click(2)
    controller.on_bounds_changed(BBox(min_lon=44.75, min_lat=41.70, max_lon=44.85, max_lat=41.75))

    rows = {r["cause"]: r for r in recorder.churn(view_mode="listings")}
    assert set(rows) == {"init", "marker", "bounds"}
    assert rows["init"]["churn"] == 2
    assert rows["marker"]["churn"] == 4
    assert rows["bounds"]["churn"] == 3
    recorder.close()


def test_process_recorder_follows_settings(tmp_path, monkeypatch):
    db_path = tmp_path / "reconciles.duckdb"
    monkeypatch.setenv("MAPVIEW_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("MAPVIEW_TELEMETRY", "1")
    monkeypatch.setenv("MAPVIEW_TELEMETRY_BATCH", "5")

    recorder = get_recorder()
    assert recorder is not None
    assert recorder.batch_size == 5
    assert get_recorder() is recorder
    assert db_path.exists()

    reset_recorder()
    assert not db_path.exists()


def test_disabled_telemetry_has_no_recorder(monkeypatch):
    monkeypatch.setenv("MAPVIEW_TELEMETRY", "off")
    assert get_recorder() is None
