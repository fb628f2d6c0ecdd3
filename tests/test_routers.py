"""API tests — scan log, visitors, check-in, reports, health."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from app.models.qr_scan import QRScan
from app.models.visitor import Visitor

VISITOR_ID = "507f1f77bcf86cd799439011"
EVENT_ID = "65f0c0ffee0000000000e001"


class TestCheckVisitor:
    def test_unscanned_visitor(self, client):
        resp = client.get("/api/qrscans/check-visitor", params={"visitorId": VISITOR_ID})
        assert resp.status_code == 200
        assert resp.json()["exists"] is False
        assert resp.json().get("scan") is None

    def test_scanned_visitor(self, client):
        client.post("/api/qrscans", json={"visitorId": VISITOR_ID, "name": "Jane Doe",
                                           "company": "Acme", "eventName": "Tech Expo",
                                           "entryType": "QR"})
        body = client.get("/api/qrscans/check-visitor", params={"visitorId": VISITOR_ID}).json()
        assert body["exists"] is True
        assert body["scan"]["name"] == "Jane Doe"
        assert body["scan"]["company"] == "Acme"
        assert body["scan"]["eventName"] == "Tech Expo"
        assert body["scan"]["entryType"] == "QR"
        assert "scanTime" in body["scan"]

    def test_missing_visitor_id(self, client):
        resp = client.get("/api/qrscans/check-visitor")
        assert resp.status_code == 400
        assert "message" in resp.json()

    def test_failed_scan_not_reported(self, client):
        client.post("/api/qrscans", json={"visitorId": VISITOR_ID, "name": "Jane Doe"})
        client.patch(f"/api/qrscans/{VISITOR_ID}", json={"status": "failed", "error": "boom"})
        body = client.get("/api/qrscans/check-visitor", params={"visitorId": VISITOR_ID}).json()
        assert body["exists"] is False


class TestScanLog:
    def test_create_with_defaults(self, client):
        resp = client.post("/api/qrscans", json={"visitorId": VISITOR_ID})
        assert resp.status_code == 201
        scan = resp.json()["scan"]
        assert scan["name"] == "Unknown"
        assert scan["eventName"] == "Unknown Event"
        assert scan["entryType"] == "Manual"
        assert scan["status"] == "Visited"
        assert scan["deviceInfo"] == "Unknown device"

    def test_missing_visitor_id(self, client):
        resp = client.post("/api/qrscans", json={"name": "Jane Doe"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Missing required field: visitorId"

    def test_duplicate_scan_conflicts(self, client):
        first = client.post("/api/qrscans", json={"visitorId": VISITOR_ID, "name": "Jane Doe"})
        second = client.post("/api/qrscans", json={"visitorId": VISITOR_ID, "name": "Jane Doe"})
        assert second.status_code == 409
        assert second.json()["scan"]["scanTime"] == first.json()["scan"]["scanTime"]

    def test_patch_marks_failed(self, client, db_session):
        client.post("/api/qrscans", json={"visitorId": VISITOR_ID, "name": "Jane Doe"})
        resp = client.patch(f"/api/qrscans/{VISITOR_ID}",
                            json={"status": "failed", "error": "Failed to update visitor status"})
        assert resp.status_code == 200
        scan = db_session.query(QRScan).filter(QRScan.visitor_id == VISITOR_ID).first()
        assert scan.status == "failed"
        assert scan.error == "Failed to update visitor status"

    def test_patch_only_touches_scan_written_at_given_time(self, client, db_session):
        client.post("/api/qrscans", json={"visitorId": VISITOR_ID, "scanTime": "2024-05-01T09:00:00"})
        other = client.patch(f"/api/qrscans/{VISITOR_ID}",
                             json={"status": "failed", "scanTime": "2024-05-01T09:30:00"})
        assert other.status_code == 404
        assert db_session.query(QRScan).filter(QRScan.visitor_id == VISITOR_ID).first().status == "Visited"

        ours = client.patch(f"/api/qrscans/{VISITOR_ID}",
                            json={"status": "failed", "scanTime": "2024-05-01T09:00:00"})
        assert ours.status_code == 200
        assert ours.json()["scan"]["status"] == "failed"

    def test_patch_unknown_scan(self, client):
        resp = client.patch(f"/api/qrscans/{VISITOR_ID}", json={"status": "failed"})
        assert resp.status_code == 404

    def test_patch_requires_status(self, client):
        resp = client.patch(f"/api/qrscans/{VISITOR_ID}", json={"error": "x"})
        assert resp.status_code == 400

    def test_list_newest_first(self, client):
        client.post("/api/qrscans", json={"visitorId": "a" * 24, "scanTime": "2024-05-01T09:00:00"})
        client.post("/api/qrscans", json={"visitorId": "b" * 24, "scanTime": "2024-05-01T10:00:00"})
        scans = client.get("/api/qrscans").json()
        assert [s["visitorId"] for s in scans] == ["b" * 24, "a" * 24]


class TestVisitors:
    def test_register_and_fetch(self, client):
        resp = client.post("/api/visitors", json={
            "name": "Jane Doe", "email": "Jane@Example.com", "phone": "+15550100",
            "eventId": EVENT_ID, "eventName": "Tech Expo",
        })
        assert resp.status_code == 201
        visitor = resp.json()
        assert len(visitor["id"]) == 24
        assert visitor["status"] == "registered"
        assert visitor["email"] == "jane@example.com"

        fetched = client.get(f"/api/visitors/{visitor['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["name"] == "Jane Doe"

    def test_duplicate_registration_rejected(self, client):
        body = {"name": "Jane Doe", "email": "jane@example.com", "phone": "1",
                "eventId": EVENT_ID, "eventName": "Tech Expo"}
        client.post("/api/visitors", json=body)
        resp = client.post("/api/visitors", json=body)
        assert resp.status_code == 400

    def test_unknown_visitor(self, client):
        resp = client.get(f"/api/visitors/{VISITOR_ID}")
        assert resp.status_code == 404
        assert resp.json() == {"message": "Visitor not found"}

    def test_malformed_id(self, client):
        assert client.get("/api/visitors/not-an-id").status_code == 400

    def test_list_filters_by_status(self, client, make_visitor):
        make_visitor()
        make_visitor(visitor_id="c" * 24, email="x@example.com", status="Visited")
        visited = client.get("/api/visitors", params={"status": "Visited"}).json()
        assert [v["id"] for v in visited] == ["c" * 24]

    def test_check_in_update(self, client, make_visitor, db_session):
        make_visitor()
        resp = client.post(f"/api/visitors/{VISITOR_ID}/check-in",
                           json={"status": "Visited", "checkInTime": "2024-05-01T09:00:00"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "Visited"
        visitor = db_session.query(Visitor).filter(Visitor.id == VISITOR_ID).first()
        assert visitor.status == "Visited"

    def test_check_in_update_is_conditional(self, client, make_visitor):
        make_visitor(status="Visited")
        resp = client.post(f"/api/visitors/{VISITOR_ID}/check-in",
                           json={"status": "Visited", "checkInTime": "2024-05-01T09:00:00"})
        assert resp.status_code == 409

    def test_check_in_update_unknown_visitor(self, client):
        resp = client.post(f"/api/visitors/{VISITOR_ID}/check-in",
                           json={"status": "Visited", "checkInTime": "2024-05-01T09:00:00"})
        assert resp.status_code == 404

    def test_check_in_update_requires_fields(self, client, make_visitor):
        make_visitor()
        resp = client.post(f"/api/visitors/{VISITOR_ID}/check-in", json={"status": "Visited"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Missing required fields"


class TestCheckInEndpoint:
    def test_first_scan_then_duplicate(self, client, make_visitor, db_session):
        make_visitor()

        first = client.post("/api/checkin", json={"code": f"  {VISITOR_ID}  ", "entryType": "Manual"},
                            headers={"User-Agent": "desk-7"})
        second = client.post("/api/checkin", json={"code": VISITOR_ID, "entryType": "QR"})

        assert first.status_code == 200
        assert first.json()["status"] == "checked_in"
        assert first.json()["visitor"]["entryType"] == "Manual"
        assert first.json()["visitor"]["deviceInfo"] == "desk-7"
        assert second.status_code == 200
        assert second.json()["status"] == "already_checked_in"
        assert second.json()["code"] == "ALREADY_CHECKED_IN"
        assert second.json()["visitor"]["scanTime"] == first.json()["visitor"]["scanTime"]
        assert db_session.query(QRScan).count() == 1

    def test_invalid_format(self, client):
        resp = client.post("/api/checkin", json={"code": "not-an-id"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_CODE_FORMAT"
        assert resp.json()["status"] == "error"

    def test_empty_code(self, client):
        resp = client.post("/api/checkin", json={"code": "   "})
        assert resp.json()["code"] == "INVALID_CODE"

    def test_unknown_visitor(self, client, db_session):
        resp = client.post("/api/checkin", json={"code": VISITOR_ID})
        assert resp.status_code == 404
        assert resp.json()["code"] == "VISITOR_NOT_FOUND"
        assert db_session.query(QRScan).count() == 0

    def test_scan_write_failure(self, client, make_visitor, db_session):
        make_visitor()
        with patch("app.services.sql_stores.scan_service.record_scan",
                   side_effect=OperationalError("INSERT", {}, Exception("down"))):
            resp = client.post("/api/checkin", json={"code": VISITOR_ID})
        assert resp.status_code == 500
        assert resp.json()["code"] == "SCAN_WRITE_FAILED"
        assert resp.json()["retryable"] is True
        visitor = db_session.query(Visitor).filter(Visitor.id == VISITOR_ID).first()
        assert visitor.status == "registered"

    def test_visitor_update_failure_compensates(self, client, make_visitor, db_session):
        make_visitor()
        with patch("app.services.sql_stores.visitor_service.mark_checked_in", return_value=False):
            resp = client.post("/api/checkin", json={"code": VISITOR_ID})
        assert resp.status_code == 500
        assert resp.json()["code"] == "VISITOR_UPDATE_FAILED"
        scan = db_session.query(QRScan).filter(QRScan.visitor_id == VISITOR_ID).first()
        assert scan.status == "failed"

        # The failed attempt can be retried once the store recovers
        retry = client.post("/api/checkin", json={"code": VISITOR_ID})
        assert retry.json()["status"] == "checked_in"

    def test_event_scope(self, client, make_visitor):
        make_visitor()
        resp = client.post("/api/checkin", json={"code": VISITOR_ID, "eventId": "f" * 24})
        assert resp.status_code == 404

    def test_unknown_entry_type_rejected(self, client):
        assert client.post("/api/checkin", json={"code": VISITOR_ID, "entryType": "NFC"}).status_code == 422


class TestStatsAndHealth:
    def test_checkin_stats(self, client, make_visitor):
        make_visitor()
        make_visitor(visitor_id="c" * 24, email="c@example.com")
        make_visitor(visitor_id="d" * 24, email="d@example.com", status="cancelled")
        client.post("/api/checkin", json={"code": VISITOR_ID, "entryType": "Manual"})

        stats = client.get("/api/stats/checkins").json()

        assert stats["totalVisitors"] == 3
        assert stats["checkedIn"] == 1
        assert stats["pending"] == 1
        assert stats["scansToday"] == 1
        assert stats["scansByEntryType"] == {"QR": 0, "Manual": 1}
        assert stats["failedScans"] == 0

    def test_stats_scoped_to_event(self, client, make_visitor):
        make_visitor()
        stats = client.get("/api/stats/checkins", params={"eventId": "f" * 24}).json()
        assert stats["totalVisitors"] == 0

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["lastScanAt"] is None

    def test_health_reports_last_scan(self, client, make_visitor):
        make_visitor()
        client.post("/api/checkin", json={"code": VISITOR_ID})
        assert client.get("/api/health").json()["lastScanAt"] is not None
