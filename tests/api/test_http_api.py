from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.timeclock.timeclock.common.clock import FixedClock
from src.timeclock.timeclock.main import create_app

UTC = timezone.utc

ALICE = {"X-User-Id": "1", "X-Tenant-Id": "10", "X-User-Role": "EMPLOYEE"}
BOB = {"X-User-Id": "2", "X-Tenant-Id": "10", "X-User-Role": "EMPLOYEE"}
MANAGER = {"X-User-Id": "3", "X-Tenant-Id": "10", "X-User-Role": "MANAGER"}
OTHER_TENANT = {"X-User-Id": "9", "X-Tenant-Id": "99", "X-User-Role": "ADMIN"}


@pytest.fixture()
def clock():
    return FixedClock(datetime(2024, 3, 4, 9, tzinfo=UTC))


@pytest.fixture()
def client(clock):
    app = create_app(settings_module="config.testing", clock=clock)
    return app.test_client()


def _clock_in(client, headers=ALICE, **body):
    return client.post("/api/v1/sessions/clock-in", json=body, headers=headers)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ok"


def test_identity_headers_are_required(client):
    resp = client.get("/api/v1/sessions")
    assert resp.status_code == 401
    assert resp.get_json()["success"] is False

    resp = client.get("/api/v1/sessions", headers={**ALICE, "X-User-Role": "OWNER"})
    assert resp.status_code == 401


def test_working_day_over_http(client, clock):
    resp = _clock_in(client)
    assert resp.status_code == 201
    session_id = resp.get_json()["data"]["session_id"]
    assert resp.get_json()["data"]["status"] == "WORKING"

    clock.set(datetime(2024, 3, 4, 12, tzinfo=UTC))
    assert client.post(f"/api/v1/sessions/{session_id}/breaks/start", headers=ALICE).status_code == 200
    clock.set(datetime(2024, 3, 4, 12, 30, tzinfo=UTC))
    assert client.post(f"/api/v1/sessions/{session_id}/breaks/end", headers=ALICE).status_code == 200

    clock.set(datetime(2024, 3, 4, 17, tzinfo=UTC))
    resp = client.post(f"/api/v1/sessions/{session_id}/clock-out", json={"notes": "done"}, headers=ALICE)
    data = resp.get_json()["data"]
    assert resp.status_code == 200
    assert data["total_minutes"] == 450
    assert data["clock_out"] == "2024-03-04T17:00:00+00:00"
    assert data["breaks"][0]["duration_minutes"] == 30

    resp = client.get("/api/v1/reports/daily?date=2024-03-04", headers=ALICE)
    assert resp.get_json()["data"]["total_hours"] == 7.5


def test_error_mapping(client):
    session_id = _clock_in(client).get_json()["data"]["session_id"]

    resp = _clock_in(client)
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "conflict"

    resp = client.post(f"/api/v1/sessions/{session_id}/clock-out", json={"timestamp": "2024-03-04T08:00:00Z"}, headers=ALICE)
    assert resp.status_code == 400

    resp = client.post(f"/api/v1/sessions/{session_id}/clock-out", headers=BOB)
    assert resp.status_code == 403

    resp = client.get(f"/api/v1/sessions/{session_id}", headers=OTHER_TENANT)
    assert resp.status_code == 404

    resp = client.post(f"/api/v1/sessions/{session_id}/breaks/end", headers=ALICE)
    assert resp.status_code == 422

    resp = client.get("/api/v1/sessions?limit=500", headers=ALICE)
    assert resp.status_code == 400


def test_correction_round_trip_over_http(client):
    session_id = _clock_in(client).get_json()["data"]["session_id"]
    client.post(
        f"/api/v1/sessions/{session_id}/clock-out",
        json={"timestamp": "2024-03-04T17:00:00Z"},
        headers=ALICE,
    )

    resp = client.post(
        "/api/v1/corrections",
        json={"session_id": session_id, "reason": "forgot", "requested_clock_out": "2024-03-04T18:00:00Z"},
        headers=ALICE,
    )
    assert resp.status_code == 201
    request_id = resp.get_json()["data"]["request_id"]

    resp = client.post("/api/v1/corrections", json={"session_id": session_id, "reason": "nothing"}, headers=ALICE)
    assert resp.status_code == 400

    pending = client.get("/api/v1/corrections/pending", headers=MANAGER).get_json()["data"]
    assert [r["request_id"] for r in pending["requests"]] == [request_id]

    assert client.post(f"/api/v1/corrections/{request_id}/approve", headers=BOB).status_code == 403

    resp = client.post(f"/api/v1/corrections/{request_id}/approve", json={"notes": "ok"}, headers=MANAGER)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == "APPROVED"

    session = client.get(f"/api/v1/sessions/{session_id}", headers=ALICE).get_json()["data"]
    assert session["total_minutes"] == 540

    history = client.get(f"/api/v1/sessions/{session_id}/corrections", headers=ALICE).get_json()["data"]
    assert history["total"] == 1

    resp = client.post(f"/api/v1/corrections/{request_id}/reject", json={"notes": "late"}, headers=MANAGER)
    assert resp.status_code == 422



def test_clock_routes_take_an_explicit_timestamp_or_the_current_time(client, clock):
    resp = _clock_in(client, timestamp="2024-03-04T08:15:00Z")
    assert resp.get_json()["data"]["clock_in"] == "2024-03-04T08:15:00+00:00"
    session_id = resp.get_json()["data"]["session_id"]

    clock.set(datetime(2024, 3, 4, 16, 15, tzinfo=UTC))
    resp = client.post(f"/api/v1/sessions/{session_id}/clock-out", headers=ALICE)
    assert resp.get_json()["data"]["clock_out"] == "2024-03-04T16:15:00+00:00"
    assert resp.get_json()["data"]["total_minutes"] == 480


def test_session_audit_history_over_http(client):
    session_id = _clock_in(client).get_json()["data"]["session_id"]
    client.post(f"/api/v1/sessions/{session_id}/clock-out", json={"timestamp": "2024-03-04T17:00:00Z"}, headers=ALICE)

    resp = client.get(f"/api/v1/sessions/{session_id}/audit", headers=MANAGER)
    assert resp.status_code == 200
    entries = resp.get_json()["data"]
    assert [e["action"] for e in entries] == ["CREATED", "UPDATED"]
    assert entries[-1]["new_values"]["clock_out"] == "2024-03-04T17:00:00+00:00"

    assert client.get(f"/api/v1/sessions/{session_id}/audit", headers=ALICE).status_code == 403
    assert client.get(f"/api/v1/sessions/{session_id}/audit", headers=OTHER_TENANT).status_code == 404

def test_validate_endpoint(client):
    _clock_in(client)

    resp = client.post(
        "/api/v1/sessions/validate",
        json={"start": "2024-03-04T10:00:00Z", "end": "2024-03-04T11:00:00Z"},
        headers=ALICE,
    )
    data = resp.get_json()["data"]
    assert resp.status_code == 200
    assert data["is_valid"] is False
    assert len(data["conflicts"]) == 1


def test_reports_weekly_and_monthly(client):
    resp = client.get("/api/v1/reports/weekly?year=2024&week=10", headers=ALICE)
    data = resp.get_json()["data"]
    assert resp.status_code == 200
    assert data["week_start"] == "2024-03-04"
    assert len(data["daily_summaries"]) == 7

    resp = client.get("/api/v1/reports/monthly?year=2024&month=13", headers=ALICE)
    assert resp.status_code == 400
