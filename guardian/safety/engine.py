"""
Campus Guardian Safety — SOS alerts and the visitor guest log

An SOS carries the sender's real position; unlike incident reports there is
no (0,0) stand-in when the device cannot provide one. Guest check-ins are
append-only and need no account.
"""
import logging
from typing import Dict, List, Optional

from ..errorbus import ErrorBus
from ..errors import NotFound, ValidationFailed
from ..eventstream import ActivityStream
from ..incidents.models import GeoPoint
from ..store import ANONYMOUS, SERVER_TIMESTAMP, Actor, DocumentStore, Query
from ..users import UserProfile

logger = logging.getLogger(__name__)

SOS_COLLECTION = "sos_alerts"
GUEST_COLLECTION = "guestLogs"

MIN_GUEST_NAME = 2
MIN_VISIT_PURPOSE = 10


class SafetyDesk:

    def __init__(self, store: DocumentStore, bus: ErrorBus, activity: ActivityStream):
        self.store = store
        self.bus = bus
        self.activity = activity

    # ------------------------------------------------------------------
    # SOS
    # ------------------------------------------------------------------

    def raise_sos(self, profile: UserProfile, latitude: Optional[float], longitude: Optional[float],
                  actor: Actor) -> Dict:
        if latitude is None or longitude is None:
            raise ValidationFailed(
                "Could not get location. Please ensure location services are enabled.", field="coords"
            )
        try:
            coords = GeoPoint(latitude=latitude, longitude=longitude)
        except ValueError as e:
            raise ValidationFailed(str(e), field="coords")

        alert_id = self.store.add(SOS_COLLECTION, {
            "uid": profile.uid,
            "userName": profile.name,
            "coords": coords.to_dict(),
            "timestamp": SERVER_TIMESTAMP,
            "activeStatus": True,
        }, actor)
        logger.warning(f"[SOS] {profile.name} ({profile.uid}) at {coords.latitude},{coords.longitude}")
        self.activity.emit(
            "SOS_RAISED",
            user=profile.name,
            summary=f"SOS from {profile.name}",
            details={"alertId": alert_id, **coords.to_dict()},
        )
        return self.store.get(SOS_COLLECTION, alert_id, actor)

    def active_alerts(self, actor: Actor) -> List[Dict]:
        return self.store.query(Query(SOS_COLLECTION).where("activeStatus", "==", True), actor)

    def resolve(self, alert_id: str, actor: Actor) -> Dict:
        try:
            doc = self.store.update(SOS_COLLECTION, alert_id, {
                "activeStatus": False,
                "resolvedBy": actor.uid,
                "resolvedAt": SERVER_TIMESTAMP,
            }, actor)
        except NotFound:
            raise NotFound("SOS alert not found")
        self.activity.emit("SOS_RESOLVED", user=actor.uid, summary=f"SOS {alert_id} resolved")
        return doc

    def resolve_detached(self, alert_id: str, actor: Actor):
        """Acknowledge from the guard console without waiting; failures reach the error bus."""
        self.bus.run_detached(
            lambda: self.resolve(alert_id, actor),
            path=f"{SOS_COLLECTION}/{alert_id}",
            operation="update",
            request_data={"activeStatus": False},
            actor_uid=actor.uid,
        )

    # ------------------------------------------------------------------
    # Guest log
    # ------------------------------------------------------------------

    def check_in(self, name: str, purpose: str) -> Dict:
        name = (name or "").strip()
        purpose = (purpose or "").strip()
        if len(name) < MIN_GUEST_NAME:
            raise ValidationFailed("Please enter your full name.", field="name")
        if len(purpose) < MIN_VISIT_PURPOSE:
            raise ValidationFailed("Please describe the purpose of your visit.", field="purpose")

        log_id = self.store.add(GUEST_COLLECTION, {
            "name": name,
            "purpose": purpose,
            "checkInTime": SERVER_TIMESTAMP,
        }, ANONYMOUS)
        logger.info(f"[GuestLog] {name} checked in")
        self.activity.emit("GUEST_CHECKED_IN", user=name, summary=purpose[:80])
        return {"id": log_id, "name": name, "purpose": purpose}

    def guest_log(self, actor: Actor, limit: int = 100) -> List[Dict]:
        return self.store.query(Query(GUEST_COLLECTION), actor, limit=limit)
