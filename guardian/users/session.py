"""
Campus Guardian Users — request session helpers

The signed session cookie carries only the uid; the profile (and with it the
role) is re-read on every request so role changes take effect immediately.
"""
from typing import Iterable, Optional, Tuple

from fastapi import Request
from starlette.requests import HTTPConnection

from ..errors import NotAuthenticated, PermissionDenied
from ..store import ANONYMOUS, Actor
from .models import UserProfile


def current_profile(request: HTTPConnection) -> Optional[UserProfile]:
    uid = request.session.get("uid")
    if not uid:
        return None
    return request.app.state.users.get_profile(uid)


def current_actor(request: HTTPConnection) -> Actor:
    profile = current_profile(request)
    if profile is None:
        return ANONYMOUS
    return Actor(uid=profile.uid, role=profile.role)


def require_login(request: Request, roles: Optional[Iterable[str]] = None) -> Tuple[UserProfile, Actor]:
    """Return (profile, actor) or raise. `roles` limits which roles may call the route."""
    profile = current_profile(request)
    if profile is None:
        raise NotAuthenticated("You must be logged in.")
    if roles is not None and profile.role not in set(roles):
        raise PermissionDenied(request.url.path, request.method.lower(),
                               f"This action is not available to the {profile.role} role.")
    return profile, Actor(uid=profile.uid, role=profile.role)
