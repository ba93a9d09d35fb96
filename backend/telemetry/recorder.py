"""
Reconcile log: one row per marker-layer rebuild, stored in a local DuckDB file.

Rows are buffered in memory and written in batches of `batch_size`; reads flush first so
they always see everything recorded so far. Write failures are logged and the batch is
dropped; nothing here raises back into the map engine.
"""
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any

import duckdb

from engine.reconciler import ReconcileEvent
from telemetry.schema import (
    CHURN_SQL_TEMPLATE,
    CREATE_RECONCILES_SQL,
    INSERT_RECONCILE_SQL,
    RECENT_ABORTS_SQL_TEMPLATE,
)

logger = logging.getLogger(__name__)


class ReconcileRecorder:
    def __init__(
        self, conn: duckdb.DuckDBPyConnection, *, path: Path, batch_size: int = 100
    ) -> None:
        self.conn = conn
        self.path = path
        self.batch_size = max(1, int(batch_size))
        self._pending: list[tuple[Any, ...]] = []
        self._lock = threading.Lock()
        self.conn.execute(CREATE_RECONCILES_SQL)

    @classmethod
    def open(cls, path: Path, *, batch_size: int = 100) -> "ReconcileRecorder":
        path.parent.mkdir(parents=True, exist_ok=True)
        return cls(duckdb.connect(str(path)), path=path, batch_size=batch_size)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def record(self, event: ReconcileEvent) -> None:
        row = (
            int(time.time() * 1000),
            event.mode.value,
            event.cause,
            int(event.visible),
            event.stats.removed,
            event.stats.created,
            event.stats.capped,
            bool(event.stats.aborted),
            bool(event.has_selection),
        )
        with self._lock:
            self._pending.append(row)
            full = len(self._pending) >= self.batch_size
        if full:
            self.flush()

    def flush(self) -> int:
        """
        Write buffered rows. Returns how many were written.
        """
        with self._lock:
            rows, self._pending = self._pending, []
            if not rows:
                return 0
            try:
                self.conn.executemany(INSERT_RECONCILE_SQL, rows)
            except duckdb.Error:
                logger.exception("Dropped %d reconcile rows", len(rows))
                return 0
        return len(rows)

    def churn(
        self, *, view_mode: str | None = None, cause: str | None = None
    ) -> list[dict[str, Any]]:
        """
        Marker churn per (view mode, cause), heaviest cause first within each mode.
        """
        self.flush()
        where: list[str] = []
        params: list[Any] = []
        if view_mode:
            where.append("view_mode = ?")
            params.append(view_mode)
        if cause:
            where.append("cause = ?")
            params.append(cause)
        sql = CHURN_SQL_TEMPLATE.format(where_sql=f"WHERE {' AND '.join(where)}" if where else "")
        with self._lock:
            rows = (self.conn.execute(sql, params) if params else self.conn.execute(sql)).fetchall()
        return [
            {
                "viewMode": mode,
                "cause": cause_v,
                "n": int(n),
                "churn": int(churn or 0),
                "avgCreated": float(avg_created) if avg_created is not None else None,
                "maxCreated": int(max_created or 0),
                "cappedCount": int(capped_n or 0),
                "abortedCount": int(aborted_n or 0),
            }
            for mode, cause_v, n, churn, avg_created, max_created, capped_n, aborted_n in rows
        ]

    def recent_aborts(self, limit: int = 20) -> list[dict[str, Any]]:
        self.flush()
        with self._lock:
            sql = RECENT_ABORTS_SQL_TEMPLATE.format(limit=max(1, int(limit)))
            rows = self.conn.execute(sql).fetchall()
        return [
            {"tsMs": int(ts), "viewMode": mode, "cause": cause, "visible": visible, "created": created}
            for ts, mode, cause, visible, created in rows
        ]

    def close(self, *, delete: bool = False) -> None:
        self.flush()
        with self._lock:
            try:
                self.conn.close()
            except duckdb.Error as exc:
                logger.debug("Closing reconcile log failed: %s", exc)
        if delete:
            self.path.unlink(missing_ok=True)
