"""
Campus Guardian — error taxonomy.

Components raise these; main.py renders them as the standard
{"ok": false, "error": ..., "kind": ...} envelope.
"""
from typing import Dict, Optional


class GuardianError(Exception):
    """Base class for per-operation, recoverable failures."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict:
        body = {"ok": False, "error": self.message, "kind": self.kind}
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailed(GuardianError):
    status_code = 422
    kind = "validation"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class NotFound(GuardianError):
    status_code = 404
    kind = "not_found"


class PermissionDenied(GuardianError):
    """Raised by the store when access rules refuse a read or write."""

    status_code = 403
    kind = "permission_denied"

    def __init__(self, path: str, operation: str, message: Optional[str] = None):
        super().__init__(
            message or f"Missing or insufficient permissions: {operation} {path}",
            {"path": path, "operation": operation},
        )
        self.path = path
        self.operation = operation


class Conflict(GuardianError):
    status_code = 409
    kind = "conflict"


class NoData(GuardianError):
    status_code = 400
    kind = "no_data"


class ServiceUnavailable(GuardianError):
    """Transient failure; the user may retry the action."""

    status_code = 503
    kind = "unavailable"


class ClassificationFailed(ServiceUnavailable):
    kind = "classification_failed"


class NotAuthenticated(GuardianError):
    status_code = 401
    kind = "not_authenticated"
