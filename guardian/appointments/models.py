"""
Campus Guardian Appointments — types
"""
from enum import Enum


class AppointmentType(str, Enum):
    ACADEMIC_GUIDANCE = "Academic Guidance"
    GRIEVANCE_REDRESSAL = "Grievance Redressal"
    MENTORSHIP = "Mentorship"
    WELLNESS_SESSION = "Wellness Session"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    RESCHEDULED = "rescheduled"


APPOINTMENT_TYPES = [t.value for t in AppointmentType]
APPOINTMENT_STATUSES = [s.value for s in AppointmentStatus]

# Wellness sessions are only created by incident triage.
BOOKABLE_TYPES = [
    AppointmentType.ACADEMIC_GUIDANCE.value,
    AppointmentType.GRIEVANCE_REDRESSAL.value,
    AppointmentType.MENTORSHIP.value,
]

MIN_NOTES_LENGTH = 10
MIN_AVAILABILITY_LENGTH = 10

# target status -> statuses it may be reached from
TRANSITIONS = {
    AppointmentStatus.APPROVED.value: (AppointmentStatus.PENDING.value,),
    AppointmentStatus.RESCHEDULED.value: (AppointmentStatus.PENDING.value,),
    AppointmentStatus.COMPLETED.value: (AppointmentStatus.APPROVED.value,),
}
