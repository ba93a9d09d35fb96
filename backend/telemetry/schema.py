from __future__ import annotations

CREATE_RECONCILES_SQL = """
CREATE TABLE IF NOT EXISTS reconciles (
  ts_ms BIGINT,
  view_mode TEXT,
  cause TEXT,
  visible INTEGER,
  removed INTEGER,
  created INTEGER,
  capped INTEGER,
  aborted BOOLEAN,
  has_selection BOOLEAN
);
"""

INSERT_RECONCILE_SQL = """
INSERT INTO reconciles
  (ts_ms, view_mode, cause, visible, removed, created, capped, aborted, has_selection)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

# churn = markers destroyed plus markers created, the full cost of one rebuild.
CHURN_SQL_TEMPLATE = """
SELECT
  view_mode,
  cause,
  COUNT(*) AS n,
  SUM(removed + created) AS churn,
  AVG(created) AS avg_created,
  MAX(created) AS max_created,
  SUM(CASE WHEN capped > 0 THEN 1 ELSE 0 END) AS capped_n,
  SUM(CASE WHEN aborted THEN 1 ELSE 0 END) AS aborted_n
FROM reconciles
{where_sql}
GROUP BY view_mode, cause
ORDER BY view_mode, churn DESC, cause
"""

RECENT_ABORTS_SQL_TEMPLATE = """
SELECT ts_ms, view_mode, cause, visible, created
FROM reconciles
WHERE aborted
ORDER BY ts_ms DESC
LIMIT {limit}
"""
