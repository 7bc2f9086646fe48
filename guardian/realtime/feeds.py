"""
Campus Guardian Live Feeds — named live queries a dashboard can subscribe to.
"""
from typing import Callable, Dict, Tuple

from ..errors import NotFound, PermissionDenied
from ..store import Query
from ..users import UserProfile

# feed name -> (roles allowed, query builder)
FEEDS: Dict[str, Tuple[Tuple[str, ...], Callable[[UserProfile], Query]]] = {
    "incidents": (("admin",), lambda p: Query("incidents")),
    "my-reports": (
        ("guard", "student", "faculty", "admin"),
        lambda p: Query("incidents").where("reporterId", "==", p.uid),
    ),
    "involved": (("student",), lambda p: Query("incidents").where("targetStudentId", "==", p.uid)),
    "children": (
        ("parent",),
        lambda p: Query("incidents").where("targetStudentId", "in", p.childrenUids or []),
    ),
    "my-appointments": (("student",), lambda p: Query("appointments").where("studentId", "==", p.uid)),
    "session-requests": (("faculty",), lambda p: Query("appointments").where("staffId", "==", p.uid)),
    "sos": (("guard", "admin"), lambda p: Query("sos_alerts").where("activeStatus", "==", True)),
    "guest-log": (("guard", "admin"), lambda p: Query("guestLogs")),
}


def feed_query(feed: str, profile: UserProfile) -> Query:
    if feed not in FEEDS:
        raise NotFound(f"Unknown feed: {feed}")
    roles, build = FEEDS[feed]
    if profile.role not in roles:
        raise PermissionDenied(f"feeds/{feed}", "list", f"The {feed} feed is not available to the {profile.role} role.")
    return build(profile)
