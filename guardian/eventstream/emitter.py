"""
Campus Guardian Activity Stream — Emitter

ActivityStream.emit() records one lifecycle action. It is additive to the
documents themselves and never breaks the caller's flow.
"""
import logging
from typing import Dict, List, Optional

from ..store.models import server_ts
from .models import count_events, get_event_stats, init_eventstream_schema, insert_event, query_events

logger = logging.getLogger(__name__)


def _severity_for_event(event_type: str) -> str:
    if event_type in ("SOS_RAISED",):
        return "critical"
    if event_type in ("INCIDENT_REPORTED", "WELLNESS_ASSIGNED"):
        return "alert"
    if event_type in ("INCIDENT_DELETED", "USER_DELETED", "ROLE_CHANGED"):
        return "warning"
    return "info"


def _category_for_event(event_type: str) -> str:
    if event_type.startswith("INCIDENT_") or event_type == "WELLNESS_ASSIGNED":
        return "incident"
    if event_type.startswith("APPOINTMENT_"):
        return "appointment"
    if event_type.startswith("SOS_") or event_type.startswith("GUEST_"):
        return "safety"
    if event_type.startswith("USER_") or event_type == "ROLE_CHANGED":
        return "account"
    return "system"


class ActivityStream:

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_eventstream_schema(db_path)

    def emit(
        self,
        event_type: str,
        incident_id: Optional[str] = None,
        appointment_id: Optional[str] = None,
        user: Optional[str] = None,
        summary: Optional[str] = None,
        details: Optional[Dict] = None,
        category: Optional[str] = None,
        severity: Optional[str] = None,
    ) -> Optional[int]:
        """Returns the event ID on success, None on failure."""
        try:
            return insert_event(
                self.db_path,
                timestamp=server_ts(),
                event_type=event_type,
                category=category or _category_for_event(event_type),
                severity=severity or _severity_for_event(event_type),
                incident_id=incident_id,
                appointment_id=appointment_id,
                user=user,
                summary=summary,
                details=details,
            )
        except Exception as e:
            logger.error(f"[EventStream] emit failed: {e}")
            return None

    def query(self, limit: int = 50, offset: int = 0, **filters) -> List[Dict]:
        return query_events(self.db_path, limit=limit, offset=offset, **filters)

    def count(self, **filters) -> int:
        return count_events(self.db_path, **filters)

    def stats(self, since: Optional[str] = None) -> Dict:
        return get_event_stats(self.db_path, since=since)
