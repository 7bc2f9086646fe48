# ============================================================================
# CAMPUS GUARDIAN - Live Feed Hub
# ============================================================================
# Pushes store snapshots and error-bus events to WebSocket clients.
# Producers may fire from any thread; messages are handed to the socket's
# event loop and sent in order. Whatever a socket attached is detached when
# it closes.
# ============================================================================

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

Push = Callable[[Dict], None]
Detach = Callable[[], None]


class LiveHub:
    """Tracks open live sockets by feed and pumps messages to them."""

    def __init__(self):
        # WebSocket -> {"uid": ..., "feed": ...}
        self._connections: Dict[WebSocket, Dict[str, str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, uid: str, feed: str):
        await websocket.accept()
        async with self._lock:
            self._connections[websocket] = {"uid": uid, "feed": feed}
        logger.info(f"[Live] {uid} joined {feed}. Open sockets: {len(self._connections)}")
        await self.send(websocket, {
            "type": "connected",
            "feed": feed,
            "timestamp": datetime.now().isoformat(),
        })

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            info = self._connections.pop(websocket, None)
        if info:
            logger.info(f"[Live] {info['uid']} left {info['feed']}. Open sockets: {len(self._connections)}")

    def connection_count(self, feed: Optional[str] = None) -> int:
        if feed is None:
            return len(self._connections)
        return sum(1 for info in self._connections.values() if info["feed"] == feed)

    async def send(self, websocket: WebSocket, data: Dict) -> bool:
        try:
            await websocket.send_json(data)
            return True
        except Exception as e:
            logger.warning(f"[Live] send failed: {e}")
            return False

    async def serve(
        self,
        websocket: WebSocket,
        uid: str,
        feed: str,
        attach: Callable[[Push], Detach],
    ):
        """Run one socket until the client leaves.

        `attach(push)` registers the producer and returns its detach callable.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def push(message: Dict):
            loop.call_soon_threadsafe(queue.put_nowait, message)

        await self.connect(websocket, uid, feed)
        detach = attach(push)
        sender = asyncio.create_task(self._drain(websocket, queue))
        try:
            while True:
                data = await websocket.receive_json()
                if isinstance(data, dict) and data.get("type") == "ping":
                    push({"type": "pong"})
        except WebSocketDisconnect:
            pass
        finally:
            detach()
            sender.cancel()
            await self.disconnect(websocket)

    async def _drain(self, websocket: WebSocket, queue: asyncio.Queue):
        while True:
            message = await queue.get()
            if not await self.send(websocket, message):
                return
