"""
Campus Guardian — Safety Tests
===============================
Tests: SOS alerts, resolution (awaited and detached), guest log
"""

import pytest

from guardian.errors import NotFound, ValidationFailed
from guardian.store import ANONYMOUS
from tests.conftest import actor_for, db_docs, login_as


class TestSos:

    def test_student_raises_sos(self, client, seeded_db):
        login_as(client, "stud1")
        resp = client.post("/api/sos", json={"latitude": 17.44, "longitude": 78.35})
        assert resp.status_code == 200
        data = resp.json()
        assert "Help is on the way" in data["message"]
        alert = data["alert"]
        assert alert["uid"] == "stud1"
        assert alert["userName"] == "A. Kumar"
        assert alert["coords"] == {"latitude": 17.44, "longitude": 78.35}
        assert alert["activeStatus"] is True

        login_as(client, "guard1")
        active = client.get("/api/sos/active").json()["alerts"]
        assert alert["id"] in [a["id"] for a in active]

    def test_sos_needs_location(self, student_session):
        resp = student_session.post("/api/sos", json={})
        assert resp.status_code == 422
        assert resp.json()["details"]["field"] == "coords"

    def test_students_cannot_list_alerts(self, student_session):
        assert student_session.get("/api/sos/active").status_code == 403

    def test_guard_resolves(self, client, seeded_db):
        login_as(client, "stud2")
        alert = client.post("/api/sos", json={"latitude": 17.0, "longitude": 78.0}).json()["alert"]

        login_as(client, "guard1")
        resp = client.post(f"/api/sos/{alert['id']}/resolve")
        assert resp.status_code == 200
        doc = resp.json()["alert"]
        assert doc["activeStatus"] is False
        assert doc["resolvedBy"] == "guard1"
        assert doc["resolvedAt"]

        active = client.get("/api/sos/active").json()["alerts"]
        assert alert["id"] not in [a["id"] for a in active]

    def test_detached_resolve(self, client, seeded_db):
        login_as(client, "stud2")
        alert = client.post("/api/sos", json={"latitude": 17.1, "longitude": 78.1}).json()["alert"]

        login_as(client, "admin1")
        resp = client.post(f"/api/sos/{alert['id']}/resolve", params={"wait": "false"})
        assert resp.status_code == 202
        assert db_docs("sos_alerts", id=alert["id"])[0]["activeStatus"] is False

    def test_detached_denial_published(self, client, seeded_db):
        login_as(client, "stud2")
        alert = client.post("/api/sos", json={"latitude": 17.2, "longitude": 78.2}).json()["alert"]

        resp = client.post(f"/api/sos/{alert['id']}/resolve", params={"wait": "false"})
        assert resp.status_code == 202
        assert db_docs("sos_alerts", id=alert["id"])[0]["activeStatus"] is True

        login_as(client, "admin1")
        events = client.get("/api/errors/recent").json()["events"]
        assert any(e["path"] == f"sos_alerts/{alert['id']}" and e["code"] == "permission-denied" for e in events)

    def test_resolve_missing(self, guard_session):
        resp = guard_session.post("/api/sos/nope/resolve")
        assert resp.status_code == 404
        assert resp.json()["error"] == "SOS alert not found"


class TestGuestLog:

    def test_check_in_without_account(self, client, seeded_db):
        client.post("/api/session/logout")
        resp = client.post("/api/guest-log", json={"name": "Kiran Rao", "purpose": "Meeting the placement office"})
        assert resp.status_code == 200
        entry = resp.json()["entry"]
        assert entry["name"] == "Kiran Rao"

        login_as(client, "guard1")
        entries = client.get("/api/guest-log").json()["entries"]
        assert entry["id"] in [e["id"] for e in entries]
        assert entries[0]["checkInTime"]

    def test_purpose_too_short(self, client, seeded_db):
        resp = client.post("/api/guest-log", json={"name": "Kiran Rao", "purpose": "visit"})
        assert resp.status_code == 422
        assert resp.json()["details"]["field"] == "purpose"

    def test_name_required(self, client, seeded_db):
        resp = client.post("/api/guest-log", json={"name": " ", "purpose": "Dropping off documents"})
        assert resp.status_code == 422
        assert resp.json()["details"]["field"] == "name"

    def test_students_cannot_read_log(self, student_session):
        resp = student_session.get("/api/guest-log")
        assert resp.status_code == 403


class TestSafetyDesk:

    def test_resolve_detached_reports_missing_alert(self, fresh):
        fresh.safety.resolve_detached("ghost", actor_for("guard1", fresh))
        events = fresh.bus.recent()
        assert len(events) == 1
        assert events[0]["code"] == "write-failed"
        assert events[0]["path"] == "sos_alerts/ghost"

    def test_resolve_missing(self, fresh):
        with pytest.raises(NotFound):
            fresh.safety.resolve("ghost", actor_for("guard1", fresh))

    def test_out_of_range_coordinates(self, fresh):
        student = fresh.users.get_profile("stud1")
        with pytest.raises(ValidationFailed):
            fresh.safety.raise_sos(student, 91.0, 0.0, actor_for("stud1", fresh))

    def test_guest_log_newest_first(self, fresh):
        fresh.safety.check_in("First Guest", "Library membership enquiry")
        fresh.safety.check_in("Second Guest", "Interview at the admin block")
        names = [e["name"] for e in fresh.safety.guest_log(actor_for("admin1", fresh))]
        assert names == ["Second Guest", "First Guest"]

    def test_guest_log_anonymous_read_denied(self, fresh):
        from guardian.errors import PermissionDenied
        with pytest.raises(PermissionDenied):
            fresh.safety.guest_log(ANONYMOUS)
