"""
Campus Guardian Users — session & account API routes
"""
import logging
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field

from .engine import UserDirectory
from .session import current_profile, require_login

logger = logging.getLogger(__name__)


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6)
    mobileNumber: str = Field(..., min_length=10, max_length=10)
    role: str = "student"
    department: Optional[str] = None
    adminCode: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RoleChange(BaseModel):
    role: str


class ChildrenLink(BaseModel):
    childrenUids: List[str]


class Preferences(BaseModel):
    languagePreference: Optional[str] = None
    mobileNumber: Optional[str] = None


def register_user_routes(app: FastAPI, users: UserDirectory):
    """Register signup/login/session and admin user-management endpoints."""

    @app.post("/api/session/signup")
    async def api_signup(request: Request, body: SignupRequest):
        profile = users.signup(
            name=body.name,
            email=body.email,
            password=body.password,
            mobile_number=body.mobileNumber,
            role=body.role,
            department=body.department,
            admin_code=body.adminCode,
        )
        request.session["uid"] = profile.uid
        return {"ok": True, "user": profile.to_doc()}

    @app.post("/api/session/login")
    async def api_login(request: Request, body: LoginRequest):
        profile = users.login(body.email, body.password)
        if profile is None:
            return JSONResponse(
                {"ok": False, "error": "Invalid email or password.", "kind": "not_authenticated"},
                status_code=401,
            )
        request.session["uid"] = profile.uid
        logger.info(f"[Session] login {profile.email} ({profile.role})")
        return {"ok": True, "user": profile.to_doc(), "role": profile.role}

    @app.post("/api/session/logout")
    async def api_logout(request: Request):
        request.session.clear()
        return {"ok": True}

    @app.get("/api/session/status")
    async def api_session_status(request: Request):
        profile = current_profile(request)
        if profile is None:
            return {"ok": True, "logged_in": False}
        return {"ok": True, "logged_in": True, "user": profile.to_doc(), "role": profile.role}

    @app.post("/api/session/preferences")
    async def api_preferences(request: Request, body: Preferences):
        profile, actor = require_login(request)
        doc = users.update_preferences(
            profile.uid, actor, language=body.languagePreference, mobile_number=body.mobileNumber
        )
        return {"ok": True, "user": doc}

    # ============================================================
    # ADMIN — USER MANAGEMENT
    # ============================================================

    @app.get("/api/users")
    async def api_list_users(request: Request, role: Optional[str] = None):
        _, actor = require_login(request, roles=["admin"])
        return {"ok": True, "users": users.list_users(actor, role=role)}

    @app.post("/api/users/{uid}/role")
    async def api_set_role(uid: str, request: Request, body: RoleChange):
        # Role checks for this write happen in the store rules.
        _, actor = require_login(request)
        doc = users.set_role(uid, body.role, actor)
        return {"ok": True, "user": doc}

    @app.post("/api/users/{uid}/children")
    async def api_link_children(uid: str, request: Request, body: ChildrenLink):
        _, actor = require_login(request)
        doc = users.link_children(uid, body.childrenUids, actor)
        return {"ok": True, "user": doc}

    @app.delete("/api/users/{uid}")
    async def api_delete_user(uid: str, request: Request):
        _, actor = require_login(request)
        message = users.delete_profile(uid, actor)
        return {"ok": True, "message": message}

    @app.get("/api/faculty")
    async def api_faculty(request: Request):
        _, actor = require_login(request)
        faculty = [
            {"uid": f["id"], "name": f.get("name"), "department": f.get("department"),
             "availability": f.get("availability")}
            for f in users.list_faculty(actor)
        ]
        return {"ok": True, "faculty": faculty}
