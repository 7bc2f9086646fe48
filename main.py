# ============================================================================
# CAMPUS GUARDIAN — Application Entry Point
# ============================================================================
# Builds one application instance: settings, the document store and its
# collaborators, the error bus, and every route group. Components receive
# what they need here; nothing reaches for a module-level global.
#
# Run:  uvicorn main:app --reload
# ============================================================================

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from guardian.appointments import AppointmentManager, register_appointment_routes
from guardian.config import load_settings
from guardian.errorbus import ErrorBus, register_errorbus_routes
from guardian.errors import GuardianError
from guardian.eventstream import ActivityStream, register_eventstream_routes
from guardian.incidents import BlobStorage, GeminiClassifier, IncidentManager, register_incident_routes
from guardian.inflight import InFlightGuard
from guardian.realtime import LiveHub, register_live_routes
from guardian.safety import SafetyDesk, register_safety_routes
from guardian.store import DocumentStore
from guardian.users import AuthProvider, UserDirectory, register_user_routes
from guardian.views import register_view_routes

# ================================================================
# PATHS / SETTINGS / LOGGING
# ================================================================

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

settings = load_settings()

logging.basicConfig(
    level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("guardian")

# ================================================================
# FASTAPI APP
# ================================================================

app = FastAPI(title="Campus Guardian")
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)

Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

# ================================================================
# COMPONENTS
# ================================================================

store = DocumentStore(settings.db_path)
auth = AuthProvider(settings.db_path)
activity = ActivityStream(settings.db_path)
bus = ErrorBus(recent_limit=settings.recent_error_limit)
inflight = InFlightGuard()
hub = LiveHub()

users = UserDirectory(
    store, auth,
    campus_email_domain=settings.campus_email_domain,
    admin_signup_code=settings.admin_signup_code,
    activity=activity,
)
incident_manager = IncidentManager(
    store,
    classifier=GeminiClassifier(settings.gemini_api_key, settings.gemini_model),
    blobs=BlobStorage(settings.upload_dir),
    users=users,
    bus=bus,
    activity=activity,
    inflight=inflight,
    page_size=settings.page_size,
)
appointment_manager = AppointmentManager(store, users, activity, inflight=inflight)
safety_desk = SafetyDesk(store, bus, activity)

app.state.settings = settings
app.state.store = store
app.state.users = users
app.state.bus = bus
app.state.activity = activity
app.state.incidents = incident_manager
app.state.appointments = appointment_manager
app.state.safety = safety_desk
app.state.hub = hub


@app.on_event("startup")
async def _guardian_startup():
    if not incident_manager.classifier.is_configured():
        logger.warning("[Startup] no Gemini API key configured; incident submission will fail")
    activity.emit("SYSTEM_STARTUP", user="SYSTEM", summary="Campus Guardian backend startup")


# ================================================================
# ERROR RENDERING
# ================================================================

@app.exception_handler(GuardianError)
async def _guardian_error(request: Request, exc: GuardianError):
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError):
    fields = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "request"] = err.get("msg", "Invalid value")
    return JSONResponse(
        {"ok": False, "error": "Please correct the highlighted fields.", "kind": "validation", "fields": fields},
        status_code=422,
    )


# ================================================================
# ROUTES
# ================================================================

register_user_routes(app, users)
register_incident_routes(app, incident_manager)
register_appointment_routes(app, appointment_manager)
register_safety_routes(app, safety_desk)
register_eventstream_routes(app, activity)
register_errorbus_routes(app, bus, hub)
register_live_routes(app, store, hub)
register_view_routes(app, templates, users, incident_manager, appointment_manager, safety_desk)


@app.get("/api/ping")
async def api_ping():
    return {"ok": True, "message": "pong"}


@app.get("/health")
async def health():
    return {
        "ok": True,
        "classifier": incident_manager.classifier.name,
        "classifier_configured": incident_manager.classifier.is_configured(),
        "live_subscriptions": store.subscription_count(),
        "error_subscribers": bus.handler_count,
    }
