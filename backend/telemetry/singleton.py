from __future__ import annotations

import logging
import threading

import duckdb

from engine.reconciler import ReconcileEvent
from telemetry.config import load_settings
from telemetry.recorder import ReconcileRecorder

logger = logging.getLogger(__name__)

_RECORDER: ReconcileRecorder | None = None
_LOCK = threading.Lock()


def get_recorder() -> ReconcileRecorder | None:
    """
    Process-wide reconcile log, or None when telemetry is off or the file can't be opened.
    """
    global _RECORDER
    settings = load_settings()
    if not settings.enabled:
        return None
    with _LOCK:
        if _RECORDER is not None:
            if _RECORDER.path == settings.path:
                return _RECORDER
            _RECORDER.close()
            _RECORDER = None
        try:
            _RECORDER = ReconcileRecorder.open(settings.path, batch_size=settings.batch_size)
        except (duckdb.Error, OSError) as exc:
            logger.warning("Reconcile log unavailable at %s: %s", settings.path, exc)
        return _RECORDER


def record_reconcile(event: ReconcileEvent) -> None:
    recorder = get_recorder()
    if recorder is not None:
        recorder.record(event)


def reset_recorder() -> None:
    global _RECORDER
    with _LOCK:
        if _RECORDER is not None:
            _RECORDER.close(delete=True)
            _RECORDER = None
        else:
            load_settings().path.unlink(missing_ok=True)
