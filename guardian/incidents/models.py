"""
Campus Guardian Incidents — types
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class IncidentType(str, Enum):
    VERBAL_ABUSE = "Verbal Abuse"
    INTIMIDATION = "Intimidation"
    MICRO_AGGRESSIONS = "Micro-aggressions"
    OTHER = "Other"


class IncidentStatus(str, Enum):
    REPORTED = "reported"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    WELLNESS_ASSIGNED = "wellness-assigned"


INCIDENT_TYPES = [t.value for t in IncidentType]
INCIDENT_STATUSES = [s.value for s in IncidentStatus]


@dataclass
class GeoPoint:
    latitude: float = 0.0
    longitude: float = 0.0

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError("latitude out of range")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError("longitude out of range")

    def to_dict(self) -> Dict:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @property
    def is_unknown(self) -> bool:
        return self.latitude == 0.0 and self.longitude == 0.0


@dataclass
class Attachment:
    """An uploaded file waiting to be stored with a report."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def is_audio(self) -> bool:
        return self.content_type.startswith("audio/")


@dataclass
class NewIncident:
    transcript: str
    reporter_id: str
    reporter_name: str
    target_student_id: Optional[str] = None
    location: Optional[GeoPoint] = None
    attachments: List[Attachment] = field(default_factory=list)
