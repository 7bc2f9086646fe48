"""
Campus Guardian Safety
SOS alerts for anyone signed in and the visitor check-in log.
"""
from .engine import SafetyDesk
from .routes import register_safety_routes

__all__ = ["SafetyDesk", "register_safety_routes"]
