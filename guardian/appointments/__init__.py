"""
Campus Guardian Appointments
Session booking with faculty and the wellness department.
"""
from .engine import AppointmentManager
from .models import APPOINTMENT_STATUSES, APPOINTMENT_TYPES, BOOKABLE_TYPES, AppointmentStatus, AppointmentType
from .routes import register_appointment_routes

__all__ = [
    "AppointmentManager",
    "APPOINTMENT_STATUSES",
    "APPOINTMENT_TYPES",
    "BOOKABLE_TYPES",
    "AppointmentStatus",
    "AppointmentType",
    "register_appointment_routes",
]
