"""
Campus Guardian Views
Role-scoped dashboards and the static navigation table.
"""
from .navigation import NAV_ITEMS, nav_for
from .routes import register_view_routes

__all__ = ["NAV_ITEMS", "nav_for", "register_view_routes"]
