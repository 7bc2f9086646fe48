"""
Campus Guardian Incidents — API Routes
"""
import logging
from typing import List, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from ..errors import ValidationFailed
from ..store import REPORTING_ROLES
from ..users.session import require_login
from .engine import IncidentManager, IncidentPager, PagerState
from .export import CSV_FILENAME, XLSX_FILENAME, incidents_to_csv, incidents_to_xlsx
from .models import Attachment, GeoPoint, NewIncident

logger = logging.getLogger(__name__)

PAGER_SESSION_KEY = "incident_pager"


class IncidentReport(BaseModel):
    transcript: str = Field(..., min_length=1)
    targetStudentId: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class StatusChange(BaseModel):
    status: str
    wait: bool = True


def _location(latitude: Optional[float], longitude: Optional[float]) -> Optional[GeoPoint]:
    # Location is optional; a missing coordinate means the reporter's device had none.
    if latitude is None or longitude is None:
        return None
    try:
        return GeoPoint(latitude=latitude, longitude=longitude)
    except ValueError as e:
        raise ValidationFailed(str(e), field="location")


def register_incident_routes(app: FastAPI, manager: IncidentManager):
    """Register incident reporting, triage, listing and export endpoints."""

    pager = IncidentPager(manager)

    def _load_state(request: Request) -> PagerState:
        return PagerState.from_dict(request.session.get(PAGER_SESSION_KEY))

    def _save_state(request: Request, state: PagerState):
        request.session[PAGER_SESSION_KEY] = state.to_dict()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @app.post("/api/incidents")
    async def api_submit_incident(request: Request, body: IncidentReport):
        profile, actor = require_login(request, roles=REPORTING_ROLES)
        incident = await manager.submit(
            NewIncident(
                transcript=body.transcript,
                reporter_id=profile.uid,
                reporter_name=profile.name,
                target_student_id=body.targetStudentId or None,
                location=_location(body.latitude, body.longitude),
            ),
            actor,
        )
        return {"ok": True, "incident": incident}

    @app.post("/api/incidents/upload")
    async def api_submit_incident_with_files(
        request: Request,
        transcript: str = Form(...),
        targetStudentId: Optional[str] = Form(None),
        latitude: Optional[float] = Form(None),
        longitude: Optional[float] = Form(None),
        files: List[UploadFile] = File(default=[]),
    ):
        profile, actor = require_login(request, roles=REPORTING_ROLES)
        attachments = []
        for f in files:
            attachments.append(Attachment(
                filename=f.filename or "attachment",
                content=await f.read(),
                content_type=f.content_type or "application/octet-stream",
            ))

        progress = []
        incident = await manager.submit(
            NewIncident(
                transcript=transcript,
                reporter_id=profile.uid,
                reporter_name=profile.name,
                target_student_id=targetStudentId or None,
                location=_location(latitude, longitude),
                attachments=attachments,
            ),
            actor,
            on_progress=progress.append,
        )
        return {"ok": True, "incident": incident, "progress": progress}

    # ------------------------------------------------------------------
    # Admin review
    # ------------------------------------------------------------------

    @app.get("/api/incidents/page")
    async def api_incident_page(
        request: Request,
        direction: str = Query("first"),
        status: Optional[str] = None,
        incident_type: Optional[str] = Query(None, alias="type"),
    ):
        """One page of the filtered incident list; the cursor trail lives in the session."""
        _, actor = require_login(request, roles=["admin"])
        state = _load_state(request)
        if direction != "first" and PAGER_SESSION_KEY in request.session:
            # Paging keeps the filters the list was opened with unless new ones are given.
            status = status if status is not None else state.status
            incident_type = incident_type if incident_type is not None else state.incident_type
        view = pager.browse(state, direction, actor, status=status or None, incident_type=incident_type or None)
        _save_state(request, state)
        return {"ok": True, **view, "filters": {"status": state.status, "type": state.incident_type}}

    def _loaded_page(request: Request) -> List:
        _, actor = require_login(request, roles=["admin"])
        state = _load_state(request)
        view = pager.browse(state, "current", actor, status=state.status, incident_type=state.incident_type)
        _save_state(request, state)
        return view["incidents"]

    @app.get("/api/incidents/export.csv")
    async def api_export_csv(request: Request):
        body = incidents_to_csv(_loaded_page(request))
        return Response(
            content=body,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{CSV_FILENAME}"'},
        )

    @app.get("/api/incidents/export.xlsx")
    async def api_export_xlsx(request: Request):
        body = incidents_to_xlsx(_loaded_page(request))
        return Response(
            content=body,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f'attachment; filename="{XLSX_FILENAME}"'},
        )

    @app.get("/api/incidents/map")
    async def api_incident_map(request: Request):
        _, actor = require_login(request, roles=["admin"])
        return {"ok": True, "points": manager.map_points(actor)}

    @app.get("/api/incidents/stats")
    async def api_incident_stats(request: Request):
        _, actor = require_login(request, roles=["admin"])
        return {"ok": True, "stats": manager.stats(actor)}

    @app.post("/api/incidents/{incident_id}/status")
    async def api_set_status(incident_id: str, request: Request, body: StatusChange,
                             background: BackgroundTasks):
        _, actor = require_login(request)
        if not body.wait:
            manager.validate_status(body.status)
            background.add_task(manager.set_status_detached, incident_id, body.status, actor)
            return JSONResponse({"ok": True, "queued": True}, status_code=202)
        incident = manager.set_status(incident_id, body.status, actor)
        return {"ok": True, "incident": incident}

    @app.post("/api/incidents/{incident_id}/wellness")
    async def api_assign_wellness(incident_id: str, request: Request):
        _, actor = require_login(request)
        result = manager.assign_wellness(incident_id, actor)
        return {"ok": True, **result}

    @app.delete("/api/incidents/{incident_id}")
    async def api_delete_incident(incident_id: str, request: Request):
        _, actor = require_login(request)
        manager.delete(incident_id, actor)
        return {"ok": True, "deleted": incident_id}

    # ------------------------------------------------------------------
    # Role views
    # ------------------------------------------------------------------

    @app.get("/api/incidents/mine")
    async def api_my_incidents(request: Request):
        """Guards see what they filed; students also see incidents naming them."""
        profile, actor = require_login(request, roles=["guard", "student", "faculty", "admin"])
        if profile.role == "student":
            incidents = manager.for_student(profile.uid, actor)
        else:
            incidents = manager.for_reporter(profile.uid, actor)
        return {"ok": True, "incidents": incidents, "count": len(incidents)}

    @app.get("/api/incidents/children")
    async def api_children_incidents(request: Request):
        profile, actor = require_login(request, roles=["parent"])
        incidents = manager.for_children(profile.childrenUids or [], actor)
        return {
            "ok": True,
            "incidents": incidents,
            "linked": bool(profile.childrenUids),
        }
