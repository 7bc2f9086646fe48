"""
Campus Guardian Error Bus
Structured side channel for store writes that fail where nobody is waiting.
"""
from .bus import (
    CODE_PERMISSION_DENIED,
    CODE_WRITE_FAILED,
    EVENT_KIND,
    ErrorBus,
    PermissionErrorEvent,
)
from .routes import register_errorbus_routes

__all__ = [
    "CODE_PERMISSION_DENIED",
    "CODE_WRITE_FAILED",
    "EVENT_KIND",
    "ErrorBus",
    "PermissionErrorEvent",
    "register_errorbus_routes",
]
