"""
Campus Guardian — Error Bus Tests
==================================
Tests: publish/subscribe, report, detached writes, recent list, /ws/errors
"""

import pytest
from starlette.websockets import WebSocketDisconnect

from guardian.errorbus import CODE_PERMISSION_DENIED, CODE_WRITE_FAILED, EVENT_KIND, ErrorBus
from guardian.errors import NotFound, PermissionDenied
from tests.conftest import file_incident, login_as


class TestBus:

    def test_subscribe_and_unsubscribe(self):
        bus = ErrorBus()
        seen = []
        unsubscribe = bus.subscribe(seen.append)
        assert bus.handler_count == 1

        bus.report(PermissionDenied("incidents/a1", "update"), "incidents/a1", "update")
        assert len(seen) == 1
        assert seen[0].code == CODE_PERMISSION_DENIED
        assert seen[0].denied is True

        unsubscribe()
        assert bus.handler_count == 0
        bus.report(PermissionDenied("incidents/a1", "update"), "incidents/a1", "update")
        assert len(seen) == 1

    def test_unsubscribe_twice_is_harmless(self):
        bus = ErrorBus()
        unsubscribe = bus.subscribe(lambda e: None)
        unsubscribe()
        unsubscribe()
        assert bus.handler_count == 0

    def test_every_subscriber_sees_every_event(self):
        bus = ErrorBus()
        first, second = [], []
        bus.subscribe(first.append)
        bus.subscribe(second.append)
        bus.report(RuntimeError("disk full"), "incidents/x", "update")
        assert len(first) == len(second) == 1
        assert first[0].code == CODE_WRITE_FAILED
        assert first[0].message == "disk full"

    def test_failing_handler_does_not_stop_others(self):
        bus = ErrorBus()
        seen = []

        def broken(event):
            raise RuntimeError("overlay crashed")

        bus.subscribe(broken)
        bus.subscribe(seen.append)
        bus.report(RuntimeError("x"), "incidents/x", "update")
        assert len(seen) == 1

    def test_denial_keeps_store_path(self):
        bus = ErrorBus()
        event = bus.report(PermissionDenied("appointments/n1", "create"), "incidents/i1", "update",
                           request_data={"status": "wellness-assigned"}, actor_uid="guard1")
        assert event.path == "appointments/n1"
        assert event.operation == "create"
        body = event.to_dict()
        assert body["kind"] == EVENT_KIND
        assert body["request_data"] == {"status": "wellness-assigned"}
        assert body["actor_uid"] == "guard1"

    def test_recent_is_bounded_newest_first(self):
        bus = ErrorBus(recent_limit=2)
        for n in range(3):
            bus.report(RuntimeError(f"e{n}"), f"incidents/{n}", "update")
        assert [e["message"] for e in bus.recent()] == ["e2", "e1"]

    def test_run_detached_success(self):
        bus = ErrorBus()
        calls = []
        bus.run_detached(lambda: calls.append("ran"), "incidents/a", "update")
        assert calls == ["ran"]
        assert bus.recent() == []

    def test_run_detached_failure_published(self):
        bus = ErrorBus()

        def write():
            raise NotFound("Incident not found")

        bus.run_detached(write, "incidents/a", "update", request_data={"status": "resolved"})
        events = bus.recent()
        assert len(events) == 1
        assert events[0]["code"] == CODE_WRITE_FAILED
        assert events[0]["path"] == "incidents/a"
        assert events[0]["message"] == "Incident not found"


class TestRoutes:

    def test_recent_admin_only(self, guard_session):
        assert guard_session.get("/api/errors/recent").status_code == 403

    def test_socket_refused_for_non_admin(self, client, seeded_db):
        login_as(client, "guard1")
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws/errors") as ws:
                ws.receive_json()
        assert exc.value.code == 4003

    def test_socket_streams_detached_failures(self, client, seeded_db):
        inc = file_incident(client, "Error overlay stream 9090")

        login_as(client, "admin1")
        with client.websocket_connect("/ws/errors") as ws:
            assert ws.receive_json()["type"] == "connected"

            login_as(client, "guard1")
            resp = client.post(f"/api/incidents/{inc['id']}/status", json={"status": "resolved", "wait": False})
            assert resp.status_code == 202

            msg = ws.receive_json()
            assert msg["type"] == EVENT_KIND
            assert msg["event"]["path"] == f"incidents/{inc['id']}"
            assert msg["event"]["code"] == CODE_PERMISSION_DENIED

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}
