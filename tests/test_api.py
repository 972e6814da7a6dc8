import json
from datetime import datetime


def _create_visit(client, **overrides):
    body = {
        "clientName": "Ana Cruz",
        "inmateName": "Jose Reyes",
        "visitDate": "2025-01-10",
        "visitTime": "10:00",
        "purpose": "Family visit",
        "relationship": "Sibling",
        "clientEmail": "ana.cruz@mail.com",
    }
    body.update(overrides)
    resp = client.post("/api/v1/visit-requests", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _approve(client, visit_id, officer="Officer Lim"):
    resp = client.patch(
        f"/api/v1/visit-requests/{visit_id}/status",
        json={"status": "Approved", "reviewedBy": officer},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def _scan(client, raw_text, officer="Officer Lim"):
    resp = client.post("/api/v1/qr/scan", json={"rawText": raw_text, "officerName": officer})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def test_health(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.headers["X-Request-ID"]


def test_issue_and_scan_round(client):
    visit = _create_visit(client)
    assert visit["status"] == "pending"
    _approve(client, visit["id"])

    resp = client.post(f"/api/v1/visit-requests/{visit['id']}/qr")
    assert resp.status_code == 200
    qr_payload = resp.json()["data"]
    assert qr_payload["visitId"] == visit["id"]
    assert qr_payload["facility"] == "Bureau of Corrections"
    assert qr_payload["expiresAt"] == "2025-01-10T10:30:00"

    first = _scan(client, json.dumps(qr_payload))
    assert first["valid"] is True
    assert first["status"] == "valid"
    assert first["isLegacyQR"] is False
    assert first["allowedTime"] == "2025-01-10T09:30:00"

    second = _scan(client, json.dumps(qr_payload), officer="Officer Tan")
    assert second["status"] == "already_used"
    assert "Officer Lim" in second["reason"]

    stored = client.get(f"/api/v1/visit-requests/{visit['id']}").json()["data"]
    assert stored["qrUsed"] is True
    assert stored["usedBy"] == "Officer Lim"


def test_scan_too_early(client, clock):
    visit = _create_visit(client)
    _approve(client, visit["id"])
    qr_payload = client.post(f"/api/v1/visit-requests/{visit['id']}/qr").json()["data"]

    clock.now = datetime(2025, 1, 10, 8, 0)
    verdict = _scan(client, json.dumps(qr_payload))
    assert verdict["status"] == "too_early"
    assert verdict["allowedTime"] == "2025-01-10T09:30:00"


def test_validate_is_dry_run(client):
    visit = _create_visit(client)
    _approve(client, visit["id"])
    qr_payload = client.post(f"/api/v1/visit-requests/{visit['id']}/qr").json()["data"]

    for _ in range(2):
        resp = client.post("/api/v1/qr/validate", json={"rawText": json.dumps(qr_payload)})
        assert resp.json()["data"]["status"] == "valid"
    assert client.get(f"/api/v1/visit-requests/{visit['id']}").json()["data"]["qrUsed"] is False


def test_scan_malformed_text(client):
    verdict = _scan(client, "not json")
    assert verdict == {
        "valid": False,
        "status": "malformed",
        "reason": "Invalid QR code format",
        "allowedTime": None,
        "expirationTime": None,
        "isLegacyQR": False,
    }

    verdict = _scan(client, "{}")
    assert verdict["status"] == "malformed"
    assert "visitId" in verdict["reason"]


def test_issue_qr_requires_approval(client):
    visit = _create_visit(client)
    resp = client.post(f"/api/v1/visit-requests/{visit['id']}/qr")
    assert resp.status_code == 409
    assert "pending" in resp.json()["message"]


def test_revoked_code_is_rejected(client):
    visit = _create_visit(client)
    _approve(client, visit["id"])
    qr_payload = client.post(f"/api/v1/visit-requests/{visit['id']}/qr").json()["data"]

    resp = client.post(
        f"/api/v1/visit-requests/{visit['id']}/qr/invalidate",
        json={"reason": "Visitor banned", "officerName": "Warden Cruz"},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["qrInvalidated"] is True

    verdict = _scan(client, json.dumps(qr_payload))
    assert verdict["status"] == "invalidated"


def test_status_change_logs_once(client):
    visit = _create_visit(client)
    _approve(client, visit["id"])
    _approve(client, visit["id"])

    entries = client.get("/api/v1/logs").json()["data"]
    assert [e["action"] for e in entries] == ["approved"]
    assert entries[0]["officerName"] == "Officer Lim"
    assert entries[0]["meta"]["previousStatus"] == "pending"


def test_reschedule_alias(client):
    visit = _create_visit(client)
    resp = client.patch(f"/api/v1/visit-requests/{visit['id']}/status", json={"status": "reschedule"})
    assert resp.json()["data"]["status"] == "rescheduled"

    listed = client.get("/api/v1/visit-requests", params={"status": "Rescheduled"}).json()["data"]
    assert [v["id"] for v in listed] == [visit["id"]]


def test_unknown_status_is_rejected(client):
    visit = _create_visit(client)
    resp = client.patch(f"/api/v1/visit-requests/{visit['id']}/status", json={"status": "teleported"})
    assert resp.status_code == 422


def test_missing_visit_request(client):
    resp = client.get("/api/v1/visit-requests/nope")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Visit request not found"}


def test_logs_filtered_by_officer_and_date(client):
    visit = _create_visit(client)
    _approve(client, visit["id"])
    qr_payload = client.post(f"/api/v1/visit-requests/{visit['id']}/qr").json()["data"]
    _scan(client, json.dumps(qr_payload), officer="Officer Lim")
    _scan(client, json.dumps(qr_payload), officer="Officer Tan")

    by_officer = client.get("/api/v1/logs", params={"officer": "Officer Tan"}).json()["data"]
    assert [e["action"] for e in by_officer] == ["scan_failed"]

    by_day = client.get("/api/v1/logs", params={"start": "2025-01-10", "end": "2025-01-10"}).json()["data"]
    assert sorted(e["action"] for e in by_day) == ["scan_failed", "scanned"]
    assert all(e["visitRequestId"] == visit["id"] for e in by_day)
