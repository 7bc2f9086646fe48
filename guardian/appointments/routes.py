"""
Campus Guardian Appointments — API Routes
"""
from typing import Optional

from fastapi import FastAPI, Request
from pydantic import BaseModel, Field

from ..users.session import require_login
from .engine import AppointmentManager


class BookingRequest(BaseModel):
    staffId: str = Field(..., min_length=1)
    type: str
    notes: str


class RescheduleRequest(BaseModel):
    note: Optional[str] = None


class AvailabilityUpdate(BaseModel):
    availability: str


def register_appointment_routes(app: FastAPI, manager: AppointmentManager):

    @app.post("/api/appointments")
    async def api_book(request: Request, body: BookingRequest):
        profile, actor = require_login(request, roles=["student"])
        appointment = manager.book(profile, body.staffId, body.type, body.notes, actor)
        return {"ok": True, "appointment": appointment}

    @app.post("/api/appointments/{appointment_id}/approve")
    async def api_approve(appointment_id: str, request: Request):
        _, actor = require_login(request)
        return {"ok": True, "appointment": manager.approve(appointment_id, actor)}

    @app.post("/api/appointments/{appointment_id}/reschedule")
    async def api_reschedule(appointment_id: str, request: Request, body: Optional[RescheduleRequest] = None):
        _, actor = require_login(request)
        note = body.note if body else None
        return {"ok": True, "appointment": manager.reschedule(appointment_id, actor, note=note)}

    @app.post("/api/appointments/{appointment_id}/complete")
    async def api_complete(appointment_id: str, request: Request):
        _, actor = require_login(request)
        return {"ok": True, "appointment": manager.complete(appointment_id, actor)}

    @app.get("/api/appointments/mine")
    async def api_my_appointments(request: Request):
        """Student session tracker."""
        profile, actor = require_login(request, roles=["student"])
        return {"ok": True, "appointments": manager.for_student(profile.uid, actor)}

    @app.get("/api/appointments/requests")
    async def api_session_requests(request: Request, status: Optional[str] = None):
        """Faculty inbox of session requests addressed to them."""
        profile, actor = require_login(request, roles=["faculty"])
        return {"ok": True, "appointments": manager.requests_for_staff(profile.uid, actor, status=status)}

    @app.post("/api/faculty/availability")
    async def api_set_availability(request: Request, body: AvailabilityUpdate):
        profile, actor = require_login(request)
        user = manager.set_availability(profile, body.availability, actor)
        return {"ok": True, "user": user}
