# ============================================================================
# CAMPUS GUARDIAN - Configuration
# ============================================================================
# Environment-backed settings with type casting and defaults.
# Every key may be overridden with GUARDIAN_<KEY> (upper case).
# ============================================================================

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# key -> (default, value_type)
DEFAULT_SETTINGS = {
    # Storage
    "db_path": (str(BASE_DIR / "guardian.db"), "string"),
    "upload_dir": (str(BASE_DIR / "uploads"), "string"),

    # Sessions / signup
    "session_secret": ("guardian-dev-secret", "string"),
    "campus_email_domain": ("hitam.org", "string"),
    "admin_signup_code": ("qwerty!@12", "string"),

    # Incident review
    "page_size": (10, "int"),

    # Classification
    "gemini_model": ("gemini-2.5-flash", "string"),
    "gemini_api_key": ("", "string"),

    # Ambient
    "log_level": ("INFO", "string"),
    "recent_error_limit": (50, "int"),
}


def _cast_value(value: str, value_type: str) -> Any:
    """Cast an environment string to the declared type."""
    if value_type == "bool":
        return value.strip().lower() in ("true", "1", "yes", "on")
    if value_type == "int":
        try:
            return int(value)
        except ValueError:
            return 0
    return value


class Settings:
    """
    Resolved configuration for one application instance.

    Values come from DEFAULT_SETTINGS, overridden by GUARDIAN_* environment
    variables, overridden by explicit keyword arguments (used by tests).
    """

    def __init__(self, **overrides):
        self._values: Dict[str, Any] = {}
        for key, (default, vtype) in DEFAULT_SETTINGS.items():
            raw = os.environ.get(f"GUARDIAN_{key.upper()}")
            self._values[key] = _cast_value(raw, vtype) if raw is not None else default
        for key, value in overrides.items():
            if key not in DEFAULT_SETTINGS:
                raise KeyError(f"Unknown setting: {key}")
            self._values[key] = value

        if not self._values["gemini_api_key"]:
            self._values["gemini_api_key"] = (
                os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY") or ""
            )

    def __getattr__(self, key: str) -> Any:
        try:
            return self._values[key]
        except KeyError:
            raise AttributeError(key) from None

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self._values.get(key, default)

    def as_dict(self, redact: bool = True) -> Dict[str, Any]:
        out = dict(self._values)
        if redact:
            for secret in ("session_secret", "gemini_api_key", "admin_signup_code"):
                if out.get(secret):
                    out[secret] = "***"
        return out


def load_settings(**overrides) -> Settings:
    """Read .env (if present) and build Settings."""
    load_dotenv()
    return Settings(**overrides)
