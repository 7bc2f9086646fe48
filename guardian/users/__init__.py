"""
Campus Guardian Users
Sign-in identities, profiles and administrator account management.
"""
from .auth import AuthProvider
from .engine import PROFILE_DELETE_CAVEAT, UserDirectory
from .models import ROLES, Role, UserProfile
from .routes import register_user_routes

__all__ = [
    "AuthProvider",
    "UserDirectory",
    "PROFILE_DELETE_CAVEAT",
    "ROLES",
    "Role",
    "UserProfile",
    "register_user_routes",
]
