"""
Campus Guardian Error Bus — consumers

/api/errors/recent returns the bounded recent list; /ws/errors streams new
events to the administrator overlay for as long as the socket stays open.
"""
from fastapi import FastAPI, Request, WebSocket

from ..realtime import LiveHub
from ..users.session import current_profile, require_login
from .bus import EVENT_KIND, ErrorBus


def register_errorbus_routes(app: FastAPI, bus: ErrorBus, hub: LiveHub):

    @app.get("/api/errors/recent")
    async def api_recent_errors(request: Request):
        require_login(request, roles=["admin"])
        return {"ok": True, "events": bus.recent(), "subscribers": bus.handler_count}

    @app.websocket("/ws/errors")
    async def errors_websocket(websocket: WebSocket):
        profile = current_profile(websocket)
        if profile is None or profile.role != "admin":
            await websocket.close(code=4003)
            return

        def attach(push):
            return bus.subscribe(lambda event: push({"type": EVENT_KIND, "event": event.to_dict()}))

        await hub.serve(websocket, profile.uid, "errors", attach)
