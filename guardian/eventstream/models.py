"""
Campus Guardian Activity Stream — storage helpers

One row per lifecycle action. Incident and appointment ids are document ids
from the store, so they are kept as text.
"""
import json
from typing import Dict, List, Optional, Tuple

from ..store.models import get_conn

# Columns usable as equality filters on the activity stream.
FILTER_COLUMNS = ("category", "event_type", "incident_id", "appointment_id", "severity", "user")


def init_eventstream_schema(db_path: str):
    conn = get_conn(db_path)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS event_stream (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            event_type TEXT NOT NULL,
            category TEXT NOT NULL,
            severity TEXT NOT NULL,
            incident_id TEXT,
            appointment_id TEXT,
            user TEXT,
            summary TEXT,
            details_json TEXT
        )
    """)
    for col in ("timestamp", "event_type", "category", "incident_id", "appointment_id"):
        conn.execute(f"CREATE INDEX IF NOT EXISTS idx_activity_{col} ON event_stream ({col})")
    conn.commit()
    conn.close()


def insert_event(db_path: str, timestamp: str, event_type: str, category: str, severity: str,
                 incident_id: Optional[str] = None, appointment_id: Optional[str] = None,
                 user: Optional[str] = None, summary: Optional[str] = None,
                 details: Optional[Dict] = None) -> int:
    row = (
        timestamp, event_type, category, severity, incident_id, appointment_id, user, summary,
        json.dumps(details) if details else None,
    )
    conn = get_conn(db_path)
    try:
        cur = conn.execute(
            "INSERT INTO event_stream (timestamp, event_type, category, severity, incident_id, "
            "appointment_id, user, summary, details_json) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            row,
        )
        conn.commit()
        return cur.lastrowid
    finally:
        conn.close()


def _where(filters: Dict) -> Tuple[str, List]:
    clauses = [f"{col} = ?" for col in FILTER_COLUMNS if filters.get(col) is not None]
    params = [filters[col] for col in FILTER_COLUMNS if filters.get(col) is not None]
    if filters.get("since"):
        clauses.append("timestamp >= ?")
        params.append(filters["since"])
    return (" WHERE " + " AND ".join(clauses)) if clauses else "", params


def _to_event(row) -> Dict:
    event = dict(row)
    raw = event.pop("details_json", None)
    event["details"] = json.loads(raw) if raw else None
    return event


def query_events(db_path: str, limit: int = 50, offset: int = 0, **filters) -> List[Dict]:
    """Matching events, newest first."""
    where, params = _where(filters)
    conn = get_conn(db_path)
    try:
        rows = conn.execute(
            f"SELECT * FROM event_stream{where} ORDER BY id DESC LIMIT ? OFFSET ?",
            params + [limit, offset],
        ).fetchall()
    finally:
        conn.close()
    return [_to_event(r) for r in rows]


def count_events(db_path: str, **filters) -> int:
    where, params = _where(filters)
    conn = get_conn(db_path)
    try:
        return conn.execute(f"SELECT COUNT(*) FROM event_stream{where}", params).fetchone()[0]
    finally:
        conn.close()


def get_event_stats(db_path: str, since: Optional[str] = None) -> Dict:
    """Counts by category and by event type (top 20)."""
    where, params = _where({"since": since})
    conn = get_conn(db_path)
    try:
        by_category = {r[0]: r[1] for r in conn.execute(
            f"SELECT category, COUNT(*) FROM event_stream{where} GROUP BY category", params
        ).fetchall()}
        by_type = {r[0]: r[1] for r in conn.execute(
            f"SELECT event_type, COUNT(*) AS n FROM event_stream{where} GROUP BY event_type ORDER BY n DESC LIMIT 20",
            params,
        ).fetchall()}
    finally:
        conn.close()
    return {"total": sum(by_category.values()), "by_category": by_category, "by_type": by_type}
