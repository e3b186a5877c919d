from __future__ import annotations

CREATE_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS events (
  ts_ms BIGINT,
  metric TEXT,
  source_id TEXT,
  zoom INTEGER,
  format TEXT,
  scale DOUBLE,
  status INTEGER,
  duration_ms DOUBLE
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  source_id,
  format,
  COUNT(*) AS n,
  AVG(duration_ms) AS avg_ms,
  quantile_cont(duration_ms, 0.50) AS p50_ms,
  quantile_cont(duration_ms, 0.95) AS p95_ms,
  quantile_cont(duration_ms, 0.99) AS p99_ms,
  AVG(CASE WHEN status >= 400 THEN 1 ELSE 0 END) AS error_rate
FROM events
{where_sql}
GROUP BY source_id, format
ORDER BY source_id, format
"""

SLOWEST_SQL_TEMPLATE = """
SELECT
  ts_ms,
  metric,
  source_id,
  zoom,
  format,
  status,
  duration_ms
FROM events
WHERE {where_sql}
ORDER BY duration_ms DESC
LIMIT ?
"""

INSERT_EVENTS_SQL = """
INSERT INTO events
  (ts_ms, metric, source_id, zoom, format, scale, status, duration_ms)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""
