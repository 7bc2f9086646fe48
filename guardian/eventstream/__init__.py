"""
Campus Guardian Activity Stream
Append-only record of incident, appointment, safety and account actions.
"""
from .emitter import ActivityStream
from .routes import register_eventstream_routes

__all__ = [
    "ActivityStream",
    "register_eventstream_routes",
]
