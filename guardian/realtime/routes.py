"""
Campus Guardian Live Feeds — WebSocket endpoint
"""
import logging

from fastapi import FastAPI, WebSocket

from ..errors import GuardianError
from ..store import Actor, DocumentStore
from ..users.session import current_profile
from .feeds import feed_query
from .hub import LiveHub

logger = logging.getLogger(__name__)


def register_live_routes(app: FastAPI, store: DocumentStore, hub: LiveHub):

    @app.websocket("/ws/live")
    async def live_websocket(websocket: WebSocket):
        """Snapshot stream for one named feed: ?feed=incidents|my-reports|..."""
        feed = websocket.query_params.get("feed", "")
        profile = current_profile(websocket)
        if profile is None:
            await websocket.close(code=4001)
            return
        try:
            query = feed_query(feed, profile)
        except GuardianError as e:
            logger.info(f"[Live] {profile.uid} refused feed {feed!r}: {e.message}")
            await websocket.close(code=4003)
            return

        actor = Actor(uid=profile.uid, role=profile.role)

        def attach(push):
            sub = store.subscribe(
                query,
                lambda docs: push({"type": "snapshot", "feed": feed, "items": docs}),
                actor,
            )
            return sub.cancel

        await hub.serve(websocket, profile.uid, feed, attach)
