"""
Campus Guardian Document Store — Access Rules

Authorization is decided here, at the store layer, for every write the
application performs. Views and engines may hide controls, but only these
rules decide whether a write lands.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from ..errors import PermissionDenied

WELLNESS_STAFF_ID = "wellness_dept"
WELLNESS_STAFF_NAME = "Wellness Center"

REPORTING_ROLES = {"guard", "student", "faculty", "admin"}


@dataclass(frozen=True)
class Actor:
    """Identity on whose behalf a store operation runs."""
    uid: Optional[str]
    role: Optional[str] = None
    system: bool = False

    @property
    def authenticated(self) -> bool:
        return self.system or bool(self.uid)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


SYSTEM_ACTOR = Actor(uid="system", role=None, system=True)
ANONYMOUS = Actor(uid=None)


def check_read(actor: Actor, collection: str):
    if collection == "guestLogs" and not (actor.system or actor.role in ("admin", "guard")):
        raise PermissionDenied(collection, "list")
    if not actor.authenticated:
        raise PermissionDenied(collection, "list")


def check_write(
    actor: Actor,
    operation: str,
    collection: str,
    doc_id: str,
    existing: Optional[Dict],
    incoming: Optional[Dict],
):
    """Raise PermissionDenied unless `actor` may perform the write.

    `existing` is the stored document (None on create); `incoming` is the
    full document after the write (None on delete).
    """
    if actor.system:
        return

    path = f"{collection}/{doc_id}"
    checker = _CHECKERS.get(collection)
    if checker is None or not checker(actor, operation, doc_id, existing or {}, incoming or {}):
        raise PermissionDenied(path, operation)


def _users(actor, op, doc_id, existing, incoming) -> bool:
    if op == "create":
        return actor.is_admin or actor.uid == doc_id
    if op == "update":
        if actor.is_admin:
            return True
        return actor.uid == doc_id and incoming.get("role") == existing.get("role")
    if op == "delete":
        return actor.is_admin
    return False


def _incidents(actor, op, doc_id, existing, incoming) -> bool:
    if op == "create":
        return (
            actor.role in REPORTING_ROLES
            and incoming.get("reporterId") == actor.uid
            and incoming.get("status") == "reported"
        )
    # Triage, wellness assignment and deletion are administrator actions.
    return actor.is_admin


def _appointments(actor, op, doc_id, existing, incoming) -> bool:
    if op == "create":
        if actor.is_admin:
            return incoming.get("staffId") == WELLNESS_STAFF_ID
        return (
            actor.role == "student"
            and incoming.get("studentId") == actor.uid
            and incoming.get("status") == "pending"
        )
    if op == "update":
        # The wellness department has no login; administrators act for it.
        wellness_session = existing.get("staffId") == WELLNESS_STAFF_ID and actor.is_admin
        if actor.uid != existing.get("staffId") and not wellness_session:
            return False
        # Staff may move status and annotate; ownership fields are fixed.
        frozen = ("studentId", "studentName", "staffId", "staffName", "type", "time")
        return all(incoming.get(k) == existing.get(k) for k in frozen)
    if op == "delete":
        return actor.is_admin
    return False


def _sos_alerts(actor, op, doc_id, existing, incoming) -> bool:
    if op == "create":
        return actor.authenticated and incoming.get("uid") == actor.uid
    if op == "update":
        if actor.role not in ("guard", "admin"):
            return False
        changed = {k for k in set(existing) | set(incoming) if existing.get(k) != incoming.get(k)}
        return changed <= {"activeStatus", "resolvedBy", "resolvedAt"}
    return False


def _guest_logs(actor, op, doc_id, existing, incoming) -> bool:
    # Visitors check in without an account; the log is append-only.
    return op == "create"


_CHECKERS = {
    "users": _users,
    "incidents": _incidents,
    "appointments": _appointments,
    "sos_alerts": _sos_alerts,
    "guestLogs": _guest_logs,
}
