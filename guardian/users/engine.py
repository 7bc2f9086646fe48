# ============================================================================
# CAMPUS GUARDIAN - User Directory
# ============================================================================
# Signup, sign-in, profile lookup and administrator account management.
# ============================================================================

import logging
import re
from typing import Dict, List, Optional

from ..errors import NotFound, ValidationFailed
from ..eventstream.emitter import ActivityStream
from ..store import SYSTEM_ACTOR, Actor, DocumentStore, Query
from .auth import AuthProvider
from .models import ROLES, SELF_SIGNUP_ROLES, UserProfile

logger = logging.getLogger(__name__)

PROFILE_DELETE_CAVEAT = (
    "User profile deleted. The sign-in account still exists and must be "
    "removed from the authentication provider separately."
)

_MOBILE_RE = re.compile(r"^\d{10}$")


class UserDirectory:

    def __init__(self, store: DocumentStore, auth: AuthProvider, campus_email_domain: str, admin_signup_code: str,
                 activity: Optional[ActivityStream] = None):
        self.store = store
        self.auth = auth
        self.campus_email_domain = campus_email_domain.lstrip("@").lower()
        self.admin_signup_code = admin_signup_code
        self.activity = activity

    # ------------------------------------------------------------------
    # Signup / sign-in
    # ------------------------------------------------------------------

    def signup(
        self,
        name: str,
        email: str,
        password: str,
        mobile_number: str,
        role: str,
        department: Optional[str] = None,
        admin_code: Optional[str] = None,
    ) -> UserProfile:
        """Create a sign-in identity and its profile document."""
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if len(name) < 2:
            raise ValidationFailed("Please enter your full name.", field="name")
        if not email.endswith("@" + self.campus_email_domain):
            raise ValidationFailed(
                f"Only emails from {self.campus_email_domain} are allowed.", field="email"
            )
        if len(password or "") < 6:
            raise ValidationFailed("Password must be at least 6 characters.", field="password")
        if not _MOBILE_RE.match(mobile_number or ""):
            raise ValidationFailed("Mobile number must be 10 digits.", field="mobileNumber")
        if role not in SELF_SIGNUP_ROLES:
            raise ValidationFailed(f"Role '{role}' cannot be chosen at signup.", field="role")
        if role == "admin" and admin_code != self.admin_signup_code:
            raise ValidationFailed(
                "The code you entered to create an admin account is incorrect.", field="adminCode"
            )

        uid = self.auth.create_identity(email, password)
        profile = UserProfile(uid=uid, name=name, email=email, role=role, mobileNumber=mobile_number)
        if role == "faculty" and department:
            profile.department = department.strip()

        self.store.set("users", uid, profile.to_doc(), Actor(uid=uid, role=role))
        logger.info(f"[Users] signup {email} as {role}")
        self._emit("USER_SIGNUP", name, f"{name} signed up as {role}")
        return profile

    def login(self, email: str, password: str) -> Optional[UserProfile]:
        uid = self.auth.authenticate(email, password)
        if not uid:
            return None
        return self.get_profile(uid)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        if not uid:
            return None
        doc = self.store.get("users", uid, SYSTEM_ACTOR)
        return UserProfile.from_doc(doc) if doc else None

    def require_profile(self, uid: str, role: Optional[str] = None, label: str = "User") -> UserProfile:
        """Resolve a uid to a profile (optionally of a given role) or raise NotFound."""
        profile = self.get_profile(uid)
        if profile is None or (role and profile.role != role):
            raise NotFound(f"{label} not found")
        return profile

    def list_users(self, actor: Actor, role: Optional[str] = None) -> List[Dict]:
        query = Query("users").ascending()
        if role:
            query = query.where("role", "==", role)
        return self.store.query(query, actor)

    def list_faculty(self, actor: Actor) -> List[Dict]:
        return self.list_users(actor, role="faculty")

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_role(self, uid: str, role: str, actor: Actor) -> Dict:
        if role not in ROLES:
            raise ValidationFailed(f"Unknown role: {role}", field="role")
        self.require_profile(uid)
        doc = self.store.update("users", uid, {"role": role}, actor)
        self._emit("ROLE_CHANGED", actor.uid, f"{doc.get('name')} is now {role}")
        return doc

    def link_children(self, parent_uid: str, children_uids: List[str], actor: Actor) -> Dict:
        self.require_profile(parent_uid, role="parent", label="Parent")
        for child in children_uids:
            self.require_profile(child, role="student", label="Student")
        return self.store.update("users", parent_uid, {"childrenUids": list(children_uids)}, actor)

    def update_preferences(self, uid: str, actor: Actor, language: Optional[str] = None,
                           mobile_number: Optional[str] = None) -> Dict:
        changes: Dict = {}
        if language is not None:
            changes["languagePreference"] = language
        if mobile_number is not None:
            if not _MOBILE_RE.match(mobile_number):
                raise ValidationFailed("Mobile number must be 10 digits.", field="mobileNumber")
            changes["mobileNumber"] = mobile_number
        if not changes:
            raise ValidationFailed("Nothing to update.")
        return self.store.update("users", uid, changes, actor)

    def delete_profile(self, uid: str, actor: Actor) -> str:
        """Remove the profile document only; returns the caveat shown to the admin."""
        self.require_profile(uid)
        self.store.delete("users", uid, actor)
        logger.info(f"[Users] profile {uid} deleted by {actor.uid}; sign-in identity retained")
        self._emit("USER_DELETED", actor.uid, f"Profile {uid} deleted")
        return PROFILE_DELETE_CAVEAT

    def _emit(self, event_type: str, user: Optional[str], summary: str):
        if self.activity is not None:
            self.activity.emit(event_type, user=user, summary=summary)
