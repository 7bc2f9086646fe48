"""
Campus Guardian Live Feeds
Store subscriptions and error-bus events delivered over WebSockets.
"""
from .feeds import FEEDS, feed_query
from .hub import LiveHub
from .routes import register_live_routes

__all__ = ["FEEDS", "feed_query", "LiveHub", "register_live_routes"]
