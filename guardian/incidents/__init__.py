"""
Campus Guardian Incidents
Reporting, AI classification, triage, wellness assignment and export.
"""
from .classifier import GeminiClassifier, IncidentClassifier, parse_label
from .engine import IncidentManager, IncidentPager, PagerState, incident_query
from .export import incidents_to_csv, incidents_to_xlsx
from .models import INCIDENT_STATUSES, INCIDENT_TYPES, Attachment, GeoPoint, IncidentStatus, IncidentType, NewIncident
from .routes import register_incident_routes
from .storage import BlobStorage

__all__ = [
    "GeminiClassifier",
    "IncidentClassifier",
    "parse_label",
    "IncidentManager",
    "IncidentPager",
    "PagerState",
    "incident_query",
    "incidents_to_csv",
    "incidents_to_xlsx",
    "INCIDENT_STATUSES",
    "INCIDENT_TYPES",
    "Attachment",
    "GeoPoint",
    "IncidentStatus",
    "IncidentType",
    "NewIncident",
    "register_incident_routes",
    "BlobStorage",
]
