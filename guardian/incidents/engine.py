"""
Campus Guardian Incidents — Lifecycle Manager

Every incident read and write goes through IncidentManager:

    submit          validate → resolve target student → classify → upload → write
    assign_wellness one transaction: wellness appointment + status change
    set_status      awaited, or detached with failures on the error bus
    delete          permanent removal
    list_page       one cursor page, newest first, optional status/type filters

IncidentPager keeps the page cursors between requests. When a later page comes
back empty it falls back a page at a time until one has rows or page 1 is reached.
"""
import datetime
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..errorbus import ErrorBus
from ..errors import (
    ClassificationFailed,
    Conflict,
    GuardianError,
    NotFound,
    PermissionDenied,
    ServiceUnavailable,
    ValidationFailed,
)
from ..eventstream import ActivityStream
from ..inflight import InFlightGuard
from ..store import (
    REPORTING_ROLES,
    SERVER_TIMESTAMP,
    SYSTEM_ACTOR,
    WELLNESS_STAFF_ID,
    WELLNESS_STAFF_NAME,
    Actor,
    DocumentStore,
    Page,
    Query,
)
from ..users import UserDirectory
from .classifier import IncidentClassifier, parse_label
from .models import INCIDENT_STATUSES, INCIDENT_TYPES, GeoPoint, IncidentStatus, NewIncident
from .storage import BlobStorage

logger = logging.getLogger(__name__)

COLLECTION = "incidents"

# Statuses reachable through set_status; wellness-assigned only via assign_wellness.
TRIAGE_STATUSES = [
    IncidentStatus.REPORTED.value,
    IncidentStatus.IN_PROGRESS.value,
    IncidentStatus.RESOLVED.value,
]


def incident_query(status: Optional[str] = None, incident_type: Optional[str] = None) -> Query:
    """Newest-first incident query with optional equality filters."""
    if status and status not in INCIDENT_STATUSES:
        raise ValidationFailed(f"Unknown status: {status}", field="status")
    if incident_type and incident_type not in INCIDENT_TYPES:
        raise ValidationFailed(f"Unknown incident type: {incident_type}", field="type")
    query = Query(COLLECTION)
    if status:
        query = query.where("status", "==", status)
    if incident_type:
        query = query.where("type", "==", incident_type)
    return query


def session_date(timestamp: Optional[str]) -> str:
    """'2024-03-05 10:00:00' -> 'March 05, 2024'. Unparseable values pass through."""
    if not timestamp:
        return "an unknown date"
    try:
        return datetime.datetime.strptime(timestamp, "%Y-%m-%d %H:%M:%S").strftime("%B %d, %Y")
    except ValueError:
        return timestamp


class IncidentManager:

    def __init__(
        self,
        store: DocumentStore,
        classifier: IncidentClassifier,
        blobs: BlobStorage,
        users: UserDirectory,
        bus: ErrorBus,
        activity: ActivityStream,
        inflight: Optional[InFlightGuard] = None,
        page_size: int = 10,
    ):
        self.store = store
        self.classifier = classifier
        self.blobs = blobs
        self.users = users
        self.bus = bus
        self.activity = activity
        self.inflight = inflight or InFlightGuard()
        self.page_size = page_size

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(
        self,
        new: NewIncident,
        actor: Actor,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> Dict:
        transcript = (new.transcript or "").strip()
        if not transcript:
            raise ValidationFailed("Cannot submit an empty report.", field="transcript")
        if not actor.system and actor.role not in REPORTING_ROLES:
            raise PermissionDenied(COLLECTION, "create", "Only campus members can file incident reports.")

        with self.inflight.hold(("submit", actor.uid)):
            target_name = None
            if new.target_student_id:
                target = self.users.require_profile(new.target_student_id, role="student", label="Student")
                target_name = target.name

            incident_type = await self._classify(transcript)

            urls = self.blobs.upload_all(new.attachments, on_progress=on_progress)
            voice_url = None
            media_urls = []
            for attachment, url in zip(new.attachments, urls):
                if attachment.is_audio and voice_url is None:
                    voice_url = url
                else:
                    media_urls.append(url)

            location = new.location or GeoPoint()
            doc = {
                "timestamp": SERVER_TIMESTAMP,
                "type": incident_type,
                "audioTranscript": transcript,
                "voiceRecordingUrl": voice_url,
                "mediaUrls": media_urls,
                "location": location.to_dict(),
                "status": IncidentStatus.REPORTED.value,
                "reporterId": new.reporter_id,
                "reporterName": new.reporter_name,
                "targetStudentId": new.target_student_id,
                "targetStudentName": target_name,
            }
            try:
                incident_id = self.store.add(COLLECTION, doc, actor)
            except Exception:
                for url in urls:
                    self.blobs.remove(url)
                raise

        logger.info(f"[Incidents] {incident_id} reported by {new.reporter_id} as {incident_type}")
        self.activity.emit(
            "INCIDENT_REPORTED",
            incident_id=incident_id,
            user=new.reporter_name,
            summary=f"{incident_type} reported",
            details={"targetStudentId": new.target_student_id, "attachments": len(urls)},
        )
        return self.store.get(COLLECTION, incident_id, SYSTEM_ACTOR)

    async def _classify(self, transcript: str) -> str:
        try:
            label = await self.classifier.classify(transcript)
        except GuardianError:
            raise
        except Exception as e:
            logger.error(f"[Incidents] classifier error: {e}")
            raise ClassificationFailed("Could not classify the incident. Please try again.") from e
        return parse_label(label)

    # ------------------------------------------------------------------
    # Wellness assignment
    # ------------------------------------------------------------------

    def assign_wellness(self, incident_id: str, actor: Actor) -> Dict:
        """Create the mandatory wellness session and mark the incident, atomically."""
        path = f"{COLLECTION}/{incident_id}"
        with self.inflight.hold(("wellness", incident_id)):
            try:
                with self.store.transaction(actor) as tx:
                    incident = tx.get(COLLECTION, incident_id)
                    if incident is None:
                        raise NotFound("Incident not found")
                    # Triage may move the incident out of wellness-assigned; the session stays.
                    if (incident.get("status") == IncidentStatus.WELLNESS_ASSIGNED.value
                            or tx.find("appointments", "incidentId", incident_id)):
                        raise Conflict("A wellness session is already assigned for this incident.")
                    if not incident.get("targetStudentId") or not incident.get("targetStudentName"):
                        raise ValidationFailed(
                            "Incident has no identified student to assign a wellness session to.",
                            field="targetStudentId",
                        )

                    appointment = {
                        "studentId": incident["targetStudentId"],
                        "studentName": incident["targetStudentName"],
                        "staffId": WELLNESS_STAFF_ID,
                        "staffName": WELLNESS_STAFF_NAME,
                        "type": "Wellness Session",
                        "time": SERVER_TIMESTAMP,
                        "notes": (
                            f"Mandatory session following incident #{incident_id} on "
                            f"{session_date(incident.get('timestamp'))}. Type: {incident.get('type')}."
                        ),
                        "status": "pending",
                        "incidentId": incident_id,
                    }
                    appointment_id = tx.add("appointments", appointment)
                    updated = tx.update(COLLECTION, incident_id, {"status": IncidentStatus.WELLNESS_ASSIGNED.value})
            except PermissionDenied as e:
                self.bus.report(e, path, "update", request_data={"status": IncidentStatus.WELLNESS_ASSIGNED.value},
                                actor_uid=actor.uid)
                raise
            except sqlite3.Error as e:
                self.bus.report(e, path, "update", request_data={"status": IncidentStatus.WELLNESS_ASSIGNED.value},
                                actor_uid=actor.uid)
                raise ServiceUnavailable("Failed to assign the wellness session. Please try again.") from e

        logger.info(f"[Incidents] wellness session {appointment_id} assigned for {incident_id}")
        self.activity.emit(
            "WELLNESS_ASSIGNED",
            incident_id=incident_id,
            appointment_id=appointment_id,
            user=actor.uid,
            summary=f"Wellness session assigned to {updated.get('targetStudentName')}",
        )
        return {"incident": updated, "appointmentId": appointment_id}

    # ------------------------------------------------------------------
    # Triage
    # ------------------------------------------------------------------

    def validate_status(self, status: str):
        if status not in TRIAGE_STATUSES:
            raise ValidationFailed(
                f"Status must be one of: {', '.join(TRIAGE_STATUSES)}", field="status"
            )

    def set_status(self, incident_id: str, status: str, actor: Actor) -> Dict:
        self.validate_status(status)
        try:
            doc = self.store.update(COLLECTION, incident_id, {"status": status}, actor)
        except NotFound:
            raise NotFound("Incident not found")
        self.activity.emit(
            "INCIDENT_STATUS_CHANGED",
            incident_id=incident_id,
            user=actor.uid,
            summary=f"Status set to {status}",
        )
        return doc

    def set_status_detached(self, incident_id: str, status: str, actor: Actor):
        """Status change nobody waits on; any failure is published on the error bus."""
        self.validate_status(status)
        self.bus.run_detached(
            lambda: self.set_status(incident_id, status, actor),
            path=f"{COLLECTION}/{incident_id}",
            operation="update",
            request_data={"status": status},
            actor_uid=actor.uid,
        )

    def delete(self, incident_id: str, actor: Actor):
        try:
            self.store.delete(COLLECTION, incident_id, actor)
        except NotFound:
            raise NotFound("Incident not found")
        logger.info(f"[Incidents] {incident_id} deleted by {actor.uid}")
        self.activity.emit("INCIDENT_DELETED", incident_id=incident_id, user=actor.uid, summary="Incident deleted")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_page(
        self,
        actor: Actor,
        status: Optional[str] = None,
        incident_type: Optional[str] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page:
        return self.store.fetch_page(
            incident_query(status, incident_type), actor,
            cursor=cursor, page_size=page_size or self.page_size,
        )

    def for_reporter(self, uid: str, actor: Actor) -> List[Dict]:
        return self.store.query(Query(COLLECTION).where("reporterId", "==", uid), actor)

    def for_student(self, uid: str, actor: Actor) -> List[Dict]:
        """Incidents the student reported or is named in, newest first, labelled by relation."""
        reported = self.store.query(Query(COLLECTION).where("reporterId", "==", uid), actor)
        involved = self.store.query(Query(COLLECTION).where("targetStudentId", "==", uid), actor)

        merged: Dict[str, Dict] = {}
        for doc in reported:
            merged[doc["id"]] = {**doc, "relation": "Reporter"}
        for doc in involved:
            merged.setdefault(doc["id"], {**doc, "relation": "Involved"})
        return sorted(merged.values(), key=lambda d: d.get("timestamp") or "", reverse=True)

    def for_children(self, children_uids: List[str], actor: Actor) -> List[Dict]:
        if not children_uids:
            return []
        return self.store.query(Query(COLLECTION).where("targetStudentId", "in", children_uids), actor)

    def map_points(self, actor: Actor) -> List[Dict]:
        """Located incidents for the heatmap; (0,0) means the location was unknown."""
        points = []
        for doc in self.store.query(Query(COLLECTION), actor):
            loc = doc.get("location") or {}
            lat, lng = loc.get("latitude", 0), loc.get("longitude", 0)
            if lat == 0 and lng == 0:
                continue
            points.append({
                "id": doc["id"],
                "latitude": lat,
                "longitude": lng,
                "type": doc.get("type"),
                "status": doc.get("status"),
            })
        return points

    def stats(self, actor: Actor) -> Dict:
        docs = self.store.query(Query(COLLECTION), actor)
        by_status = {s: 0 for s in INCIDENT_STATUSES}
        by_type = {t: 0 for t in INCIDENT_TYPES}
        for doc in docs:
            if doc.get("status") in by_status:
                by_status[doc["status"]] += 1
            if doc.get("type") in by_type:
                by_type[doc["type"]] += 1
        return {
            "total": len(docs),
            "open": by_status["reported"] + by_status["in-progress"],
            "by_status": by_status,
            "by_type": by_type,
        }


# ============================================================================
# Pager
# ============================================================================

@dataclass
class PagerState:
    """Position of one reader in the filtered incident list."""
    status: Optional[str] = None
    incident_type: Optional[str] = None
    starts: List[Optional[str]] = field(default_factory=lambda: [None])
    end: Optional[str] = None
    has_more: bool = False

    @property
    def page(self) -> int:
        return len(self.starts)

    def to_dict(self) -> Dict:
        return {
            "status": self.status,
            "type": self.incident_type,
            "starts": list(self.starts),
            "end": self.end,
            "has_more": self.has_more,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "PagerState":
        if not data:
            return cls()
        return cls(
            status=data.get("status"),
            incident_type=data.get("type"),
            starts=list(data.get("starts") or [None]),
            end=data.get("end"),
            has_more=bool(data.get("has_more")),
        )


class IncidentPager:

    DIRECTIONS = ("first", "next", "prev", "current")

    def __init__(self, manager: IncidentManager):
        self.manager = manager

    def browse(
        self,
        state: PagerState,
        direction: str,
        actor: Actor,
        status: Optional[str] = None,
        incident_type: Optional[str] = None,
    ) -> Dict:
        """Move `state` in `direction` and return the page to display. Mutates state.

        Deletions can empty more than the current page, so the fall-back keeps
        dropping cursors until a page has rows or only the first page is left.
        """
        if direction not in self.DIRECTIONS:
            raise ValidationFailed(f"Unknown direction: {direction}", field="direction")

        if direction == "first" or (status, incident_type) != (state.status, state.incident_type):
            state.status, state.incident_type = status, incident_type
            state.starts = [None]
        elif direction == "next" and state.has_more and state.end:
            state.starts.append(state.end)
        elif direction == "prev" and len(state.starts) > 1:
            state.starts.pop()

        fell_back = False
        while True:
            page = self.manager.list_page(
                actor, status=state.status, incident_type=state.incident_type, cursor=state.starts[-1],
            )
            if page.items or len(state.starts) == 1:
                break
            state.starts.pop()
            fell_back = True

        state.end = page.cursor
        state.has_more = page.has_more
        return {
            "incidents": page.items,
            "page": state.page,
            "has_more": page.has_more,
            "has_prev": state.page > 1,
            "fell_back": fell_back,
            "empty": not page.items,
        }
