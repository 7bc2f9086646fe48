"""
Campus Guardian Views — server-rendered pages

Exactly one dashboard template per role. Data is read with the viewer's own
identity so the store rules apply to pages the same way they apply to the API.
"""
import datetime
import logging
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from ..appointments import BOOKABLE_TYPES, AppointmentManager
from ..incidents import INCIDENT_STATUSES, INCIDENT_TYPES, IncidentManager, IncidentPager, PagerState
from ..incidents.routes import PAGER_SESSION_KEY
from ..safety import SafetyDesk
from ..store import Actor
from ..users import UserDirectory, UserProfile
from ..users.models import SELF_SIGNUP_ROLES, initials
from ..users.session import current_profile
from .navigation import nav_for, section_allowed

logger = logging.getLogger(__name__)


def register_view_routes(
    app: FastAPI,
    templates: Jinja2Templates,
    users: UserDirectory,
    incidents: IncidentManager,
    appointments: AppointmentManager,
    safety: SafetyDesk,
):

    def _base(request: Request, profile: Optional[UserProfile] = None, **extra) -> Dict:
        ctx = {
            "request": request,
            "title": "Campus Guardian",
            "today_date": datetime.datetime.now().strftime("%m/%d/%Y"),
            "profile": profile,
            "nav": nav_for(profile.role) if profile else [],
            "initials": initials(profile.name) if profile else "",
        }
        ctx.update(extra)
        return ctx

    pager = IncidentPager(incidents)

    def _dashboard_data(request: Request, profile: UserProfile, section: str) -> Dict:
        actor = Actor(uid=profile.uid, role=profile.role)
        role = profile.role

        if role == "admin":
            data = {"stats": incidents.stats(actor), "statuses": INCIDENT_STATUSES, "types": INCIDENT_TYPES}
            if section == "incidents-map":
                data["points"] = incidents.map_points(actor)
            elif section == "users":
                data["users"] = users.list_users(actor)
            else:
                state = PagerState.from_dict(request.session.get(PAGER_SESSION_KEY))
                view = pager.browse(state, "current", actor, status=state.status, incident_type=state.incident_type)
                request.session[PAGER_SESSION_KEY] = state.to_dict()
                data.update(incidents=view["incidents"], page=view["page"], filters=state)
            data["sos_alerts"] = safety.active_alerts(actor)
            return data
        if role == "guard":
            return {
                "reports": incidents.for_reporter(profile.uid, actor),
                "sos_alerts": safety.active_alerts(actor),
            }
        if role == "student":
            return {
                "tracker": incidents.for_student(profile.uid, actor),
                "appointments": appointments.for_student(profile.uid, actor),
                "faculty": users.list_faculty(actor),
                "bookable_types": BOOKABLE_TYPES,
                "show_sos": True,
            }
        if role == "faculty":
            return {"requests": appointments.requests_for_staff(profile.uid, actor)}
        if role == "parent":
            children_incidents = incidents.for_children(profile.childrenUids, actor)
            resolved = sum(1 for i in children_incidents if i.get("status") == "resolved")
            return {
                "incidents": children_incidents,
                "linked": bool(profile.childrenUids),
                "resolved": resolved,
            }
        return {}

    @app.get("/", response_class=HTMLResponse)
    async def root_view(request: Request):
        if current_profile(request) is not None:
            return RedirectResponse("/dashboard", status_code=303)
        return templates.TemplateResponse(request, "login.html", _base(request, signup_roles=SELF_SIGNUP_ROLES))

    @app.get("/dashboard", response_class=HTMLResponse)
    async def dashboard_view(request: Request):
        return _render_dashboard(request, "")

    @app.get("/dashboard/{section}", response_class=HTMLResponse)
    async def dashboard_section_view(request: Request, section: str):
        return _render_dashboard(request, section)

    def _render_dashboard(request: Request, section: str):
        profile = current_profile(request)
        if profile is None:
            return RedirectResponse("/", status_code=303)
        if profile.role == "visitor":
            return RedirectResponse("/check-in", status_code=303)
        if section and not section_allowed(profile.role, section):
            raise HTTPException(status_code=404, detail="Page not found")

        context = _base(request, profile, section=section, **_dashboard_data(request, profile, section))
        return templates.TemplateResponse(request, f"dashboards/{profile.role}.html", context)

    @app.get("/check-in", response_class=HTMLResponse)
    async def check_in_view(request: Request):
        profile = current_profile(request)
        return templates.TemplateResponse(request, "check_in.html", _base(request, profile))
