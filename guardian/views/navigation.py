"""
Campus Guardian Views — role navigation

Static table: role -> ordered (href, label) menu entries. The first entry is
the role's landing page.
"""
from typing import Dict, List, Tuple

NavItem = Tuple[str, str]

NAV_ITEMS: Dict[str, List[NavItem]] = {
    "admin": [
        ("/dashboard", "Overview"),
        ("/dashboard/incidents-map", "Incidents Map"),
        ("/dashboard/manage-incidents", "Manage Incidents"),
        ("/dashboard/users", "User Management"),
    ],
    "student": [
        ("/dashboard", "Dashboard"),
        ("/dashboard/book-session", "Book Session"),
        ("/dashboard/my-sessions", "My Sessions"),
        ("/dashboard/wellness", "Wellness"),
    ],
    "guard": [
        ("/dashboard", "Report Incident"),
        ("/dashboard/past-reports", "Past Reports"),
    ],
    "faculty": [
        ("/dashboard", "Session Requests"),
        ("/dashboard/set-availability", "Set Availability"),
    ],
    "parent": [
        ("/dashboard", "Safety Score"),
    ],
    "visitor": [
        ("/check-in", "Digital Guest Log"),
    ],
}


def nav_for(role: str) -> List[NavItem]:
    return NAV_ITEMS.get(role, [])


def section_allowed(role: str, section: str) -> bool:
    return any(href == f"/dashboard/{section}" for href, _ in nav_for(role))
