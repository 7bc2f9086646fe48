"""
Campus Guardian Safety — API Routes
"""
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..users.session import require_login
from .engine import SafetyDesk


class SosRequest(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class GuestCheckIn(BaseModel):
    name: str
    purpose: str


def register_safety_routes(app: FastAPI, desk: SafetyDesk):

    @app.post("/api/sos")
    async def api_raise_sos(request: Request, body: SosRequest):
        profile, actor = require_login(request)
        alert = desk.raise_sos(profile, body.latitude, body.longitude, actor)
        return {
            "ok": True,
            "alert": alert,
            "message": "Your location has been sent to security and administrators. Help is on the way.",
        }

    @app.get("/api/sos/active")
    async def api_active_sos(request: Request):
        _, actor = require_login(request, roles=["guard", "admin"])
        return {"ok": True, "alerts": desk.active_alerts(actor)}

    @app.post("/api/sos/{alert_id}/resolve")
    async def api_resolve_sos(alert_id: str, request: Request, background: BackgroundTasks,
                              wait: bool = Query(True)):
        _, actor = require_login(request)
        if not wait:
            background.add_task(desk.resolve_detached, alert_id, actor)
            return JSONResponse({"ok": True, "queued": True}, status_code=202)
        return {"ok": True, "alert": desk.resolve(alert_id, actor)}

    @app.post("/api/guest-log")
    async def api_guest_check_in(body: GuestCheckIn):
        entry = desk.check_in(body.name, body.purpose)
        return {"ok": True, "entry": entry}

    @app.get("/api/guest-log")
    async def api_guest_log(request: Request, limit: int = Query(100, ge=1, le=500)):
        _, actor = require_login(request)
        return {"ok": True, "entries": desk.guest_log(actor, limit=limit)}
