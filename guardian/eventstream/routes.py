"""
Campus Guardian Activity Stream — API Routes
"""
from typing import Optional

from fastapi import FastAPI, Query, Request

from ..users.session import require_login
from .emitter import ActivityStream


def register_eventstream_routes(app: FastAPI, stream: ActivityStream):
    """Register activity stream endpoints (administrators only)."""

    @app.get("/api/event-stream")
    async def api_event_stream(
        request: Request,
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
        category: Optional[str] = None,
        event_type: Optional[str] = None,
        incident_id: Optional[str] = None,
        severity: Optional[str] = None,
        since: Optional[str] = None,
    ):
        """Paginated, filtered activity stream JSON."""
        require_login(request, roles=["admin"])
        filters = dict(
            category=category, event_type=event_type,
            incident_id=incident_id, severity=severity, since=since,
        )
        return {
            "ok": True,
            "events": stream.query(limit=limit, offset=offset, **filters),
            "total": stream.count(**filters),
            "limit": limit,
            "offset": offset,
        }

    @app.get("/api/event-stream/stats")
    async def api_event_stream_stats(request: Request, since: Optional[str] = None):
        require_login(request, roles=["admin"])
        return {"ok": True, "stats": stream.stats(since=since)}
