from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_OFF = {"0", "false", "no", "off"}
_DEFAULT_BATCH = 100


@dataclass(frozen=True)
class TelemetrySettings:
    enabled: bool
    path: Path
    batch_size: int


def load_settings() -> TelemetrySettings:
    """
    Read reconcile-log settings from the environment.

    Re-read on every call so tests can repoint them with monkeypatch.
    """
    root = Path(__file__).resolve().parents[2]
    try:
        batch = max(1, int(os.getenv("MAPVIEW_TELEMETRY_BATCH", "")))
    except ValueError:
        batch = _DEFAULT_BATCH
    return TelemetrySettings(
        enabled=(os.getenv("MAPVIEW_TELEMETRY") or "1").strip().lower() not in _OFF,
        path=Path(
            os.getenv("MAPVIEW_TELEMETRY_PATH")
            or root / "data" / "telemetry" / "reconciles.duckdb"
        ),
        batch_size=batch,
    )
