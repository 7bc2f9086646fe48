# ============================================================================
# CAMPUS GUARDIAN - Appointment Manager
# ============================================================================
# Students book sessions with faculty; the addressed staff member approves,
# asks to reschedule, or completes them. Wellness sessions arrive from
# incident triage and belong to the wellness department.
#
#   pending ──approve──▶ approved ──complete──▶ completed
#      └────reschedule──▶ rescheduled
# ============================================================================

import logging
from typing import Dict, List, Optional

from ..errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from ..eventstream import ActivityStream
from ..inflight import InFlightGuard
from ..store import SERVER_TIMESTAMP, Actor, DocumentStore, Query
from ..users import UserDirectory, UserProfile
from .models import (
    BOOKABLE_TYPES,
    MIN_AVAILABILITY_LENGTH,
    MIN_NOTES_LENGTH,
    TRANSITIONS,
    AppointmentStatus,
)

logger = logging.getLogger(__name__)

COLLECTION = "appointments"


class AppointmentManager:

    def __init__(
        self,
        store: DocumentStore,
        users: UserDirectory,
        activity: ActivityStream,
        inflight: Optional[InFlightGuard] = None,
    ):
        self.store = store
        self.users = users
        self.activity = activity
        self.inflight = inflight or InFlightGuard()

    def book(self, student: UserProfile, staff_id: str, appointment_type: str, notes: str, actor: Actor) -> Dict:
        """Request a session with a faculty member. Nothing is written unless the faculty exists."""
        if appointment_type not in BOOKABLE_TYPES:
            raise ValidationFailed(
                f"Appointment type must be one of: {', '.join(BOOKABLE_TYPES)}", field="type"
            )
        notes = (notes or "").strip()
        if len(notes) < MIN_NOTES_LENGTH:
            raise ValidationFailed(
                f"Please describe the reason in at least {MIN_NOTES_LENGTH} characters.", field="notes"
            )

        with self.inflight.hold(("book", student.uid)):
            staff = self.users.require_profile(staff_id, role="faculty", label="Faculty")
            doc = {
                "studentId": student.uid,
                "studentName": student.name,
                "staffId": staff.uid,
                "staffName": staff.name,
                "type": appointment_type,
                "time": SERVER_TIMESTAMP,
                "notes": notes,
                "status": AppointmentStatus.PENDING.value,
            }
            appointment_id = self.store.add(COLLECTION, doc, actor)

        logger.info(f"[Appointments] {appointment_id} booked by {student.uid} with {staff.uid}")
        self.activity.emit(
            "APPOINTMENT_BOOKED",
            appointment_id=appointment_id,
            user=student.name,
            summary=f"{appointment_type} requested with {staff.name}",
        )
        return self.store.get(COLLECTION, appointment_id, actor)

    # ------------------------------------------------------------------
    # Staff transitions
    # ------------------------------------------------------------------

    def _transition(self, appointment_id: str, status: str, actor: Actor, extra: Optional[Dict] = None) -> Dict:
        current = self.store.get(COLLECTION, appointment_id, actor)
        if current is None:
            raise NotFound("Appointment not found")
        if current.get("status") not in TRANSITIONS[status]:
            raise Conflict(f"A {current.get('status')} appointment cannot be marked {status}.")

        changes = {"status": status}
        changes.update(extra or {})
        doc = self.store.update(COLLECTION, appointment_id, changes, actor)
        self.activity.emit(
            f"APPOINTMENT_{status.upper()}",
            appointment_id=appointment_id,
            user=actor.uid,
            summary=f"{doc.get('type')} with {doc.get('studentName')} {status}",
        )
        return doc

    def approve(self, appointment_id: str, actor: Actor) -> Dict:
        return self._transition(appointment_id, AppointmentStatus.APPROVED.value, actor)

    def reschedule(self, appointment_id: str, actor: Actor, note: Optional[str] = None) -> Dict:
        # No new time is proposed; the student books again.
        extra = {"rescheduleNote": note.strip()} if note and note.strip() else None
        return self._transition(appointment_id, AppointmentStatus.RESCHEDULED.value, actor, extra)

    def complete(self, appointment_id: str, actor: Actor) -> Dict:
        return self._transition(appointment_id, AppointmentStatus.COMPLETED.value, actor)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def set_availability(self, staff: UserProfile, text: str, actor: Actor) -> Dict:
        if staff.role != "faculty":
            raise PermissionDenied(f"users/{staff.uid}", "update", "Only faculty members publish availability.")
        text = (text or "").strip()
        if len(text) < MIN_AVAILABILITY_LENGTH:
            raise ValidationFailed(
                f"Availability must be at least {MIN_AVAILABILITY_LENGTH} characters.", field="availability"
            )
        return self.store.update("users", staff.uid, {"availability": text}, actor)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def for_student(self, uid: str, actor: Actor) -> List[Dict]:
        return self.store.query(Query(COLLECTION).where("studentId", "==", uid), actor)

    def requests_for_staff(self, uid: str, actor: Actor, status: Optional[str] = None) -> List[Dict]:
        query = Query(COLLECTION).where("staffId", "==", uid)
        if status:
            query = query.where("status", "==", status)
        return self.store.query(query, actor)
