"""
Campus Guardian Error Bus — publish/subscribe side channel for write failures.

Writes that nobody awaits (fire-and-forget status changes, background
updates) report their failures here instead of being swallowed. One bus is
built per application and handed to the components that need it.
"""
import datetime
import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional

from ..errors import PermissionDenied

logger = logging.getLogger(__name__)

EVENT_KIND = "permission-error"

CODE_PERMISSION_DENIED = "permission-denied"
CODE_WRITE_FAILED = "write-failed"


def _ts() -> str:
    return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class PermissionErrorEvent:
    """A rejected or failed store write."""
    path: str
    operation: str  # create | update | delete | write
    code: str
    message: str
    request_data: Optional[Dict] = None
    actor_uid: Optional[str] = None
    timestamp: str = field(default_factory=_ts)

    @property
    def denied(self) -> bool:
        return self.code == CODE_PERMISSION_DENIED

    def to_dict(self) -> Dict:
        return {"kind": EVENT_KIND, **asdict(self)}


Handler = Callable[[PermissionErrorEvent], None]


class ErrorBus:

    def __init__(self, recent_limit: int = 50):
        self._handlers: List[Handler] = []
        self._lock = threading.Lock()
        self._recent: Deque[PermissionErrorEvent] = deque(maxlen=max(1, recent_limit))

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns the matching unsubscribe callable."""
        with self._lock:
            self._handlers.append(handler)

        def _unsubscribe():
            self.unsubscribe(handler)

        return _unsubscribe

    def unsubscribe(self, handler: Handler):
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    @property
    def handler_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def publish(self, event: PermissionErrorEvent):
        with self._lock:
            self._recent.append(event)
            handlers = list(self._handlers)

        logger.warning(f"[ErrorBus] {event.code} on {event.operation} {event.path}: {event.message}")
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"[ErrorBus] handler failed: {e}")

    def recent(self) -> List[Dict]:
        with self._lock:
            return [e.to_dict() for e in reversed(self._recent)]

    def report(
        self,
        exc: BaseException,
        path: str,
        operation: str,
        request_data: Optional[Dict] = None,
        actor_uid: Optional[str] = None,
    ) -> PermissionErrorEvent:
        """Publish `exc` as a structured event and return it."""
        if isinstance(exc, PermissionDenied):
            event = PermissionErrorEvent(
                path=exc.path or path,
                operation=exc.operation or operation,
                code=CODE_PERMISSION_DENIED,
                message=exc.message,
                request_data=request_data,
                actor_uid=actor_uid,
            )
        else:
            event = PermissionErrorEvent(
                path=path,
                operation=operation,
                code=CODE_WRITE_FAILED,
                message=str(exc) or exc.__class__.__name__,
                request_data=request_data,
                actor_uid=actor_uid,
            )
        self.publish(event)
        return event

    def run_detached(
        self,
        write: Callable[[], Any],
        path: str,
        operation: str,
        request_data: Optional[Dict] = None,
        actor_uid: Optional[str] = None,
    ) -> None:
        """Run a write nobody waits on. Failures go to the bus, never to the caller."""
        try:
            write()
        except Exception as e:
            self.report(e, path, operation, request_data=request_data, actor_uid=actor_uid)
